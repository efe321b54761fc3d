"""
Core utilities shared across the profile page service.

This package hosts configuration (env vars, defaults, feature flags) and
cross-cutting helpers such as logging setup. Services and routers should
depend on these primitives instead of reading os.environ directly.
"""

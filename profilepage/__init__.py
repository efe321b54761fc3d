"""Profile page builder: content blocks, storage migration and dual-mode rendering."""

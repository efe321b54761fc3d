"""
FastAPI routers grouped by concern (public pages, editor API, profile management).

Each module exposes an APIRouter included by profilepage.app.create_app().
Routers resolve their services from app.state and translate service
exceptions into HTTP errors.
"""

# Routes package init
"""
Route Details Backend: HTTP Routes Package
============================================

Route Inventory:
    - route_endpoints.py: POST   /routes              (create)
                          GET    /routes              (list, paginated)
                          GET    /routes/search       (text search)
                          GET    /routes/count        (count with filters)
                          GET    /routes/by-tags      (tag lookup)
                          GET    /routes/{id}         (fetch one)
                          PATCH  /routes/{id}         (partial update)
                          DELETE /routes/{id}         (delete)
    - health.py:          GET    /health              (service health check)

Routes stay thin: they frame input and return the envelope built by
services.route_handlers. The message transport (route_details.messaging)
calls the same handlers.
"""

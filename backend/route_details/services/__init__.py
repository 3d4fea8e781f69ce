# Services package init
"""
Route Details Backend: Services Layer
=======================================

Service Inventory:
    - validation:      explicit input validators returning structured error lists
    - results:         Found / NotFound / Failed tagged results
    - route_service:   RouteService, the repository / query layer over SQLAlchemy
    - route_handlers:  RouteHandlers, the envelope-producing core shared by the
                       HTTP routes and the message patterns

Data flow:
    adapter → RouteHandlers → validation → RouteService → database
            ← ApiResponse  ←  Found / NotFound / Failed  ←
"""

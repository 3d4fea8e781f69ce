# Messaging package init
"""
Route Details Backend: Message-Pattern Transport
==================================================

What:  A TCP server speaking the NestJS microservice wire format, so existing
       clients that call `route.create`, `route.findAll`, ... keep working.
How:   server.MessageServer decodes `<length>#<json>` frames, looks the
       pattern up in patterns.registry and replies with the envelope that the
       shared RouteHandlers core produced (message status policy).
When:  Started and stopped by the FastAPI lifespan (main.py) when
       MESSAGE_TRANSPORT_ENABLED is true.
"""

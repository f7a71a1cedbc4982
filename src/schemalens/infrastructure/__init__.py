"""Infrastructure layer — REST transport, neighborhood cache, layout engine.

This layer depends on stdlib and third-party libs (httpx, NetworkX) and
on domain value types. It must never import from services, commands, or output.
"""

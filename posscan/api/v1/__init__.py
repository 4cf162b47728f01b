"""
==============================================================================
API Version 1
==============================================================================

Routers: health, scan, camera.

==============================================================================
"""

"""
Domain package for the README service.

Holds the models, the README resolution pipeline, markdown post-processing,
search ranking and the cache-fronted query façade. Import submodules
directly; this package does not re-export them.
"""

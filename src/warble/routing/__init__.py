"""Routing — path patterns, layers, routes and the router dispatch walk.

Layers are matched in registration order against the request path
relative to the router doing the matching; nothing is compiled into a
lookup table, so order of registration is order of execution.
"""

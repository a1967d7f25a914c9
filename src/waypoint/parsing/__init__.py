"""Parsing — navigation DSL to validated static route tree.

The parser runs once (build time or startup); its ``Config`` output is
wired into a live ``RouteTree`` by ``waypoint.routing.tree``.
"""

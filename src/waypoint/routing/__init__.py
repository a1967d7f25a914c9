"""Routing — live route nodes, matching, parameter codecs and the route tree.

Trees are built once from a parsed ``Config`` and only change wholesale,
when a module subtree is grafted onto an anchor.
"""

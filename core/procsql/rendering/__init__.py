"""
Rendering package for procsql.

Expressions, conditions, queries and stored-program trees are vendor-neutral
values; dialects in procsql.rendering.dialects turn them into SQL text.
"""

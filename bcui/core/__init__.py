"""Component runtime: instance registry, hooks, context, tree expansion and the presentation lifecycle.

Free of host and FastAPI concerns so it can be driven by the presenter, the dev server and tests.
"""

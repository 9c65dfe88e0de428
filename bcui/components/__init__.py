"""Element factories and the wire layout of each intrinsic component.
"""

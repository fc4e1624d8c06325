"""Search ranking and result merging.

Contents
- ``fusion``: the keyword-boost merge used by hybrid search
"""

"""Raster-to-vector extraction of hand-drawn line maps.

Modules:
    - ink_mask: per-tile paper colour → ink mask + white-balanced page
    - thinning: Zhang–Suen skeletonisation of the ink mask
    - skeleton_graph: skeleton pixels → polylines (junction-aware walking)
    - simplify: decimation + angle cut of each polyline
    - loops: cycle search, spurious-loop breaking
    - joiner: longest-chain stitching, short-line removal
    - classify: colour classes and unit-square normalisation
    - rectangles: external rectangle detector wrapper
    - paper: sheet selection, corner ordering, perspective warp
    - pipeline: orchestration and the invocation boundary

Workflow:
    1. Photo → scaled working copy → rectangles → paper corners → flat page
    2. Page → ink mask → skeleton → polylines → loops + joined lines
    3. Colour per line, coordinates / (width, height) → MapV1 → MapStore

Every stage works on data owned by one invocation; the configuration is frozen.
"""

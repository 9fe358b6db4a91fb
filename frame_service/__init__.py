"""
Geostationary Frame Service Package

Resolves, for one or more geostationary weather satellites, a self-consistent
"current frame": the freshest full-disk image, its capture timestamp, and the
satellite's Earth-fixed position at that instant, ready to be projected onto a
sphere.

Modules:
    config: Constants, stub element sets and environment configuration
    store: Key-value stores backing the element-set cache
    transport: Fetch strategy and image loader collaborators
    tle_cache: Persistent, conditionally revalidated element-set text cache
    elements: NORAD element-set parsing and satellite alias matching
    propagator: SGP4 propagation from two-line elements to ECEF meters
    timestamps: Capture-time extraction from URLs, headers and filenames
    image_providers: Image freshness resolution strategies
    catalog: Tracked satellites and their image sources
    frames: Frame assembly and top-level multi-satellite resolution
    projector: Projector camera setup from resolved frames
    compositor: Multi-source projective compositing
    render: Headless CPU rendering adapter
    app: Flask service exposing resolved frames
"""

__version__ = "1.0.0"

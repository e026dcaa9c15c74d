"""
Around: geo-tagged post service.

Posts (text, location and an optional image) are written to an object store,
a geo index and a wide-column store; searches run a radius query against the
geo index and drop posts that trip the content filter.
"""

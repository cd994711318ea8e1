"""
Trip planning over a preloaded dataset.

`TripEngine` turns a query (filters, sort) plus the current location state into
a `TripPlan`: nearest places, next stops ahead on the current highway, fuel
range checks and status lines.
"""

"""
RideOut Rate My Ride.

Rating aggregation and feed ranking for bike showcase posts.
"""

__version__ = "1.0.0"

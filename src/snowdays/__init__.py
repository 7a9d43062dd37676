"""Daily snowfall and season accumulation for one weather station.

Hourly SMHI observations are classified as snow or rain, bucketed into
08:00-08:00 local ski days, accumulated per Nov-Apr season and aligned on a
common day-of-season axis for historical comparison.
"""

__version__ = "0.1.0"

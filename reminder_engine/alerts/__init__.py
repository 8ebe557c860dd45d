"""Time-entry reminder escalation package.

Decides which reminder tier is due for the active period and which staff
members still need it, then hands the work to the batch dispatcher.
Oversight reports and run metrics are produced here as well.
"""

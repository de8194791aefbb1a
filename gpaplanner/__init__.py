"""
gpaplanner: GPA-ranked professor lookup and grounded AI class schedules.
"""

"""
hsstyle.engine - Rule evaluation, reporting and the check pipeline
"""

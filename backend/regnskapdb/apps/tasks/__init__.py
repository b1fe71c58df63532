"""
Tasks app

Recurring client task templates, the engine that turns them into task
instances, the in-process scheduler driving that engine, and day-to-day
task handling (status changes, completion with time registration).
"""

from .dates import days_between, parse_date


def calculate_streak(completed_dates):
    """Consecutive calendar days completed, counted back from the latest completion.

    The recurrence is ignored: a weekly habit rarely gets past 1.
    """
    days = sorted({parse_date(d) for d in completed_dates}, reverse=True)
    if not days:
        return 0
    streak = 1
    for i in range(1, len(days)):
        if days_between(days[i], days[i - 1]) != 1:
            break
        streak += 1
    return streak

"""Parameter filters shared by modules that report on catalogue applications."""

from shared.models import Application, ReportParams


def matches_application(app: Application, params: ReportParams) -> bool:
    """Apply the applications and teams filters, ignoring case.

    Applications match on app name or shortname.
    """
    if params.applications:
        wanted = {name.lower() for name in params.applications}
        if app.app_name.lower() not in wanted and app.shortname.lower() not in wanted:
            return False
    if params.teams:
        teams = {team.lower() for team in params.teams}
        if app.team.lower() not in teams:
            return False
    return True

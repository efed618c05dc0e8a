import sys
import os
import click
from rich import print
from rich.console import Console
from rich.table import Table

from datetime import date, datetime, timedelta, time

from rrkit import __version__
from rrkit.rrkit_env import RrkitEnvironment
from rrkit.model import DatabaseManager, EventNotFound, RuleValidationError
from rrkit.rule import RecurrenceRule, describe, parse, serialize, validate
from rrkit.natural import recognize
from rrkit.overlay import ExceptionSet, ExceptionType, RecurrenceException
from rrkit.generator import RecurrenceInstance, generate
from rrkit.shared import (
    configure_logging,
    duration_in_words,
    format_time_range,
    log_msg,
    parse_datetime,
)


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, date):
            return value
        s = str(value).strip().lower()
        if s in ("today", "now"):
            return date.today()
        try:
            return datetime.strptime(s, "%Y-%m-%d").date()
        except ValueError:
            self.fail("Expected YYYY-MM-DD or 'today'", param, ctx)


class _DateTimeParam(click.ParamType):
    name = "datetime"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        try:
            return parse_datetime(value)
        except ValueError:
            self.fail("Expected a datetime such as '2024-01-01 09:00'", param, ctx)


_DATE = _DateParam()
_DATETIME = _DateTimeParam()


def ensure_database(db_path, env: RrkitEnvironment):
    print(f"[yellow]⚠️ [/yellow]Database not found. Creating new database at {db_path}")
    DatabaseManager(db_path, env).close()


def rule_from_text(text: str) -> tuple[RecurrenceRule | None, str]:
    """Try the RRULE grammar first, then the phrase recognizer."""
    rule = parse(text)
    if rule is not None:
        return rule, "rrule"
    rule = recognize(text)
    if rule is not None:
        return rule, "phrase"
    return None, ""


def _fail(msg: str):
    print(f"[red]✘ {msg}[/red]")
    sys.exit(1)


def _rule_or_fail(text: str) -> RecurrenceRule:
    rule, _ = rule_from_text(text)
    if rule is None:
        _fail(f"Could not read a recurrence rule from {text!r}")
    return rule


def _instance_flag(instance: RecurrenceInstance) -> str:
    if not instance.is_exception:
        return ""
    ref = f" → #{instance.modified_event_id}" if instance.modified_event_id else ""
    return f"{instance.exception_type.value}{ref}"


def print_instances(instances: list[RecurrenceInstance], ampm: bool = False):
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("#", justify="right")
    table.add_column("date")
    table.add_column("time")
    table.add_column("exception", style="yellow")
    for idx, instance in enumerate(instances, 1):
        table.add_row(
            str(idx),
            instance.start.strftime("%Y-%m-%d %a"),
            format_time_range(instance.start, instance.end, ampm),
            _instance_flag(instance),
        )
    Console(highlight=False).print(table)


def print_rule(rule: RecurrenceRule, lang: str):
    print(f"[green]✔[/green] {serialize(rule)}")
    print(f"  [blue]{describe(rule, lang)}[/blue]")


@click.group()
@click.version_option(
    __version__, prog_name="rrkit", message="%(prog)s version %(version)s"
)
@click.option(
    "--home",
    help="Override the rrkit workspace directory (equivalent to setting $RRKIT_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """rrkit CLI – parse, validate and expand recurrence rules."""
    if home:
        os.environ["RRKIT_HOME"] = (
            home  # Must be set before RrkitEnvironment is instantiated
        )

    env = RrkitEnvironment()
    env.ensure(init_config=True, init_db_fn=lambda path: ensure_database(path, env))
    config = env.load_config()
    configure_logging(config)

    ctx.ensure_object(dict)
    ctx.obj["ENV"] = env
    ctx.obj["DB"] = env.db_path
    ctx.obj["CONFIG"] = config
    ctx.obj["VERBOSE"] = verbose


@cli.command("parse")
@click.argument("text")
@click.pass_context
def parse_cmd(ctx, text):
    """Parse an RRULE string such as 'FREQ=WEEKLY;BYDAY=MO,WE'."""
    rule = parse(text)
    if rule is None:
        _fail(f"Not a recurrence rule: {text!r}")
    print_rule(rule, ctx.obj["CONFIG"].display.lang)
    if ctx.obj["VERBOSE"]:
        print(rule)


@cli.command("recognize")
@click.argument("phrase", nargs=-1, required=True)
@click.pass_context
def recognize_cmd(ctx, phrase):
    """Infer a rule from a phrase such as '每两周' or 'every Monday'."""
    text = " ".join(phrase).strip()
    rule = recognize(text)
    if rule is None:
        _fail(f"Could not infer a recurrence from {text!r}")
    print_rule(rule, ctx.obj["CONFIG"].display.lang)


@cli.command("validate")
@click.argument("text")
@click.pass_context
def validate_cmd(ctx, text):
    """Check a rule (RRULE text or phrase) before storing it."""
    rule = _rule_or_fail(text)
    result = validate(rule)
    if result.valid:
        print(f"[green]✔ Rule is valid:[/green] {serialize(rule)}")
        return
    print(f"[red]✘ Invalid rule:[/red] {serialize(rule)}")
    for error in result.errors:
        print(f"  - {error}")
    sys.exit(1)


@cli.command("describe")
@click.argument("text")
@click.option("--lang", type=click.Choice(["zh", "en"]), default=None)
@click.pass_context
def describe_cmd(ctx, text, lang):
    """Describe a rule (RRULE text or phrase) in words."""
    rule = _rule_or_fail(text)
    click.echo(describe(rule, lang or ctx.obj["CONFIG"].display.lang))


@cli.command()
@click.argument("text")
@click.option("--start", "start", type=_DATETIME, required=True, help="Anchor start.")
@click.option("--end", "end", type=_DATETIME, help="Anchor end.")
@click.option(
    "--duration",
    type=click.IntRange(0),
    default=60,
    show_default=True,
    help="Anchor duration in minutes when --end is not given.",
)
@click.option("--until", "until", type=_DATE, help="Stop expanding after this date.")
@click.option("--max", "max_instances", type=click.IntRange(1), help="Instance ceiling.")
@click.option("--cancel", "cancelled", type=_DATE, multiple=True, help="Cancel a date.")
@click.option("--modify", "modified", type=_DATE, multiple=True, help="Mark a date modified.")
@click.pass_context
def expand(ctx, text, start, end, duration, until, max_instances, cancelled, modified):
    """
    Expand a rule into occurrences without touching the database.

    Examples:
      rrkit expand "FREQ=DAILY;COUNT=3" --start "2024-01-01 09:00"
      rrkit expand 每两周 --start "2024-01-03 18:00" --until 2024-03-01
    """
    config = ctx.obj["CONFIG"]
    rule = _rule_or_fail(text)
    end = end or start + timedelta(minutes=duration)
    if end < start:
        _fail("--end is earlier than --start")

    overrides = ExceptionSet(
        [RecurrenceException(d, ExceptionType.CANCELLED) for d in cancelled]
        + [RecurrenceException(d, ExceptionType.MODIFIED) for d in modified]
    )
    instances = generate(
        start,
        end,
        rule,
        overrides,
        query_end=until,
        max_instances=max_instances or config.generation.max_instances,
        horizon_years=config.generation.horizon_years,
    )
    if ctx.obj["VERBOSE"]:
        print_rule(rule, config.display.lang)
        print(f"[blue]duration:[/blue] {duration_in_words(end - start)}")
    print_instances(instances, config.display.ampm)


@cli.command()
@click.argument("title")
@click.argument("text")
@click.option("--start", "start", type=_DATETIME, required=True)
@click.option("--end", "end", type=_DATETIME)
@click.option("--duration", type=click.IntRange(0), default=60, show_default=True)
@click.pass_context
def add(ctx, title, text, start, end, duration):
    """Store a recurring event and print its id."""
    rule = _rule_or_fail(text)
    end = end or start + timedelta(minutes=duration)
    dbm = DatabaseManager(ctx.obj["DB"], ctx.obj["ENV"])
    try:
        event_id = dbm.create_recurring_event(title, start, end, rule)
    except RuleValidationError as e:
        _fail("; ".join(e.errors))
    finally:
        dbm.close()
    print(f"[green]✔ Added series #{event_id}:[/green] {title} {serialize(rule)}")


@cli.command()
@click.argument("event_id", type=int)
@click.option("--start", "start_opt", type=_DATE, help="Window start. Defaults to today.")
@click.option("--end", "end_opt", type=_DATE, help="Window end. Defaults to start + 4 weeks.")
@click.pass_context
def show(ctx, event_id, start_opt, end_opt):
    """List the occurrences of a stored series in a date window."""
    config = ctx.obj["CONFIG"]
    start_day = start_opt or date.today()
    end_day = end_opt or start_day + timedelta(weeks=4)
    dbm = DatabaseManager(ctx.obj["DB"], ctx.obj["ENV"])
    try:
        instances, rule = dbm.get_instances(
            event_id,
            datetime.combine(start_day, time.min),
            datetime.combine(end_day, time.max),
        )
        event = dbm.get_event(event_id)
    except EventNotFound as e:
        _fail(str(e))
    finally:
        dbm.close()

    if rule is None:
        print(f"[yellow]#{event_id} {event.title} does not repeat.[/yellow]")
        return
    print(f"[bold]#{event_id} {event.title}[/bold]  {describe(rule, config.display.lang)}")
    print_instances(instances, config.display.ampm)


def _series_update(ctx, action, event_id, day, **kwargs):
    dbm = DatabaseManager(ctx.obj["DB"], ctx.obj["ENV"])
    try:
        return getattr(dbm, action)(event_id, day, **kwargs)
    except EventNotFound as e:
        _fail(str(e))
    except RuleValidationError as e:
        _fail("; ".join(e.errors))
    finally:
        dbm.close()


@cli.command()
@click.argument("event_id", type=int)
@click.argument("day", type=_DATE)
@click.pass_context
def cancel(ctx, event_id, day):
    """Cancel one occurrence."""
    _series_update(ctx, "cancel_instance", event_id, day)
    print(f"[green]✔ Cancelled #{event_id} on {day}[/green]")


@cli.command()
@click.argument("event_id", type=int)
@click.argument("day", type=_DATE)
@click.option("--title")
@click.option("--start", "start", type=_DATETIME)
@click.option("--end", "end", type=_DATETIME)
@click.pass_context
def modify(ctx, event_id, day, title, start, end):
    """Replace one occurrence with a standalone event."""
    child_id = _series_update(
        ctx, "modify_instance", event_id, day, title=title, start=start, end=end
    )
    print(f"[green]✔ Modified #{event_id} on {day} → #{child_id}[/green]")


@cli.command()
@click.argument("event_id", type=int)
@click.argument("day", type=_DATE)
@click.option("--start", "start", type=_DATETIME, required=True)
@click.option("--end", "end", type=_DATETIME)
@click.pass_context
def move(ctx, event_id, day, start, end):
    """Move one occurrence to another time."""
    child_id = _series_update(ctx, "move_instance", event_id, day, start=start, end=end)
    print(f"[green]✔ Moved #{event_id} on {day} → #{child_id}[/green]")


@cli.command()
@click.argument("event_id", type=int)
@click.argument("day", type=_DATE)
@click.pass_context
def restore(ctx, event_id, day):
    """Drop the exception for one occurrence."""
    if _series_update(ctx, "restore_instance", event_id, day):
        print(f"[green]✔ Restored #{event_id} on {day}[/green]")
    else:
        print(f"[yellow]No exception for #{event_id} on {day}[/yellow]")


@cli.command()
@click.argument("event_id", type=int)
@click.argument("day", type=_DATE)
@click.option("--rule", "text", help="Rule for the new series (RRULE text or phrase).")
@click.option("--title")
@click.pass_context
def split(ctx, event_id, day, text, title):
    """End a series before DAY and continue it as a new series."""
    rule = _rule_or_fail(text) if text else None
    new_id = _series_update(ctx, "split_series", event_id, day, rule=rule, title=title)
    print(f"[green]✔ Split #{event_id} at {day}: new series #{new_id}[/green]")


@cli.command()
@click.argument("event_id", type=int)
@click.confirmation_option(prompt="Delete the whole series and its exceptions?")
@click.pass_context
def delete(ctx, event_id):
    """Delete a series with its exceptions and replacement events."""
    dbm = DatabaseManager(ctx.obj["DB"], ctx.obj["ENV"])
    try:
        dbm.delete_series(event_id)
    except EventNotFound as e:
        _fail(str(e))
    finally:
        dbm.close()
    log_msg(f"cli deleted series {event_id}")
    print(f"[green]✔ Deleted series #{event_id}[/green]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()

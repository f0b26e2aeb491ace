"""
Command-Line Interface for bleprobe.

Usage:
    bleprobe scan               - List nearby BLE devices with profile badges
    bleprobe identify NAME      - GATT dump, profile match and config snippet
    bleprobe identify NAME --print
                                - Identify and send a test print
    bleprobe discover NAME      - Interactive protocol discovery
    bleprobe list               - List known profiles
    bleprobe update             - Force-refresh profiles from remote
"""

import asyncio
import json
import logging
import sys

import click

from .connection import SCAN_TIMEOUT, signal_label
from .errors import DeviceNotFoundError, NotFoundError, ProbeError, TransportError
from .probe import Identification, PrinterProbe
from .profiles import ProfileDatabase, match_all, new_community_profile
from .prompts import ConsoleOracle
from .report import issue_url, profile_from_report
from .store import load_profiles_maybe_update, save_profiles

LINE = "-" * 60


def _load_db(force: bool = False) -> ProfileDatabase:
    try:
        result = load_profiles_maybe_update(force=force)
    except ProbeError as e:
        click.echo(f"Profile error: {e}", err=True)
        sys.exit(1)
    if result.message:
        click.echo(f"{result.message}\n")
    return result.db


def _print_snippet(device_name: str, snippet: dict):
    click.echo(f"\n{LINE}")
    click.echo("Paste into config.json:")
    click.echo(json.dumps(snippet, indent=2))
    click.echo(LINE)
    click.echo("\nSubmit to community:")
    click.echo(issue_url(device_name, snippet) + "\n")


def _print_identification(ident: Identification):
    click.echo("Services:")
    for uuid in ident.snapshot.services:
        click.echo(f"  {uuid}")
    click.echo("\nCharacteristics:")
    for char in ident.snapshot.characteristics:
        click.echo(f"  {char.uuid}  [{', '.join(sorted(char.properties))}]")
    click.echo()

    if ident.device_info:
        click.echo("Device info (180a):")
        for key, value in ident.device_info.items():
            click.echo(f"  {key:<12} {value}")
        click.echo()

    if not ident.matches:
        click.echo("? No matching profile found.")
        return

    if len(ident.matches) == 1:
        click.echo("Matches profile:")
    else:
        click.echo(f"Matches {len(ident.matches)} profiles:")
    for m in ident.matches:
        click.echo(f"  [{m.id}]  {m.name}")
        click.echo(
            f"    Protocol: {m.protocol.value}  |  {m.paper.width_mm}mm / {m.paper.width_px}px"
            f"  |  chunk {m.ble.chunk_size}b/{m.ble.chunk_delay}ms  MTU: {m.ble.mtu}"
        )
        if m.notes:
            click.echo(f"    Notes:    {m.notes}")


def _save_new_profile(db: ProfileDatabase, profile):
    path = save_profiles(db.with_profile(profile))
    click.echo(f'Saved profile "{profile.id}" to {path}')


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.pass_context
def main(ctx, debug):
    """Identify and probe BLE thermal printers."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
    )


@main.command()
@click.option("--timeout", default=SCAN_TIMEOUT, help="Scan timeout in seconds")
def scan(timeout):
    """List nearby named BLE devices and the profiles they match."""

    async def _scan():
        db = _load_db()
        click.echo(f"Scanning for BLE devices ({timeout:g}s)...\n")
        devices = await PrinterProbe.scan(timeout=timeout)

        for dev in devices:
            # Advertised service UUIDs are often partial or empty
            matches = match_all(dev.service_uuids, db) if dev.service_uuids else []
            badge = f"  [{'+'.join(m.id for m in matches)}]" if matches else ""
            click.echo(
                f"  {dev.name:<28} RSSI: {dev.rssi:>4} dBm  ({signal_label(dev.rssi)}){badge}"
            )

        click.echo(f"\nDone. Found {len(devices)} named device(s).")
        click.echo("To identify:   bleprobe identify <DeviceName>")
        click.echo("To test print: bleprobe identify <DeviceName> --print")
        click.echo("To discover:   bleprobe discover <DeviceName>")

    asyncio.run(_scan())


@main.command()
@click.argument("name")
@click.option("--timeout", default=SCAN_TIMEOUT, help="Scan timeout in seconds")
@click.option("--print", "print_test", is_flag=True, help="Send a test print via the matched profile")
@click.option("--save", is_flag=True, help="Save a new profile if nothing matched")
def identify(name, timeout, print_test, save):
    """Identify a printer by (partial) device NAME."""

    async def _identify():
        db = _load_db()
        probe = PrinterProbe(db)
        mode = "print" if print_test else "identify"
        click.echo(f'\nScanning for "{name}" [{mode}]...\n')

        try:
            ident = await probe.identify(name, timeout=timeout)
            _print_identification(ident)

            primary = ident.primary
            if print_test:
                if primary is None:
                    click.echo(
                        "\n--print requires an identified profile. "
                        "Run without --print first to confirm the profile."
                    )
                else:
                    try:
                        await probe.test_print(primary)
                        click.echo("Test print sent - check printer.")
                    except NotFoundError as e:
                        click.echo(f"x {e}", err=True)
                    except TransportError as e:
                        click.echo(f"Print error: {e}", err=True)

            _print_snippet(ident.device_name, ident.snippet())

            if save:
                if primary is not None:
                    click.echo(f'Profile "{primary.id}" already in database - no change.')
                else:
                    _save_new_profile(db, new_community_profile(ident.device_name, ident.snapshot))

        except DeviceNotFoundError as e:
            click.echo(f"\nTimeout: {e}", err=True)
            sys.exit(1)
        except ProbeError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        finally:
            await probe.disconnect()

    asyncio.run(_identify())


@main.command()
@click.argument("name")
@click.option("--timeout", default=SCAN_TIMEOUT, help="Scan timeout in seconds")
@click.option("--save", is_flag=True, help="Save a profile from the results if nothing matched")
def discover(name, timeout, save):
    """Interactively probe a printer by (partial) device NAME.

    Sends numbered test prints and asks what appeared on the paper.
    """

    async def _discover():
        db = _load_db()
        probe = PrinterProbe(db)
        click.echo(f'\nScanning for "{name}" [discover]...\n')

        try:
            ident = await probe.identify(name, timeout=timeout)
            _print_identification(ident)

            click.echo(f"\n{LINE}\nDISCOVERY\n{LINE}\n")
            report = await probe.discover(ConsoleOracle())

            _print_snippet(report.device_name, report.to_dict())
            click.echo("Submit the snippet above via the GitHub link.\n")

            if save:
                if ident.matches:
                    click.echo(f'Profile "{ident.primary.id}" already in database - no change.')
                else:
                    _save_new_profile(db, profile_from_report(report, ident.snapshot))

        except DeviceNotFoundError as e:
            click.echo(f"\nTimeout: {e}", err=True)
            sys.exit(1)
        except ProbeError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        finally:
            await probe.disconnect()

    asyncio.run(_discover())


@main.command("list")
def list_profiles():
    """List known printer profiles."""
    db = _load_db()
    click.echo(f"\nKnown BLE printer profiles (v{db.version}) - {len(db)} total\n")
    for p in db:
        tag = "  [identification only]" if p.is_identification_only else ""
        click.echo(f"  [{p.id}]  {p.name}{tag}")
        click.echo(f"    Protocol:  {p.protocol.value}")
        click.echo(f"    Service:   {p.ble.service_uuid}")
        click.echo(f"    Write:     {p.ble.write_char_uuid}")
        if p.ble.notify_char_uuid:
            click.echo(f"    Notify:    {p.ble.notify_char_uuid}")
        click.echo(f"    Chunk:     {p.ble.chunk_size}b / {p.ble.chunk_delay}ms  MTU: {p.ble.mtu}")
        if p.variants:
            click.echo(f"    Variants:  {', '.join(p.variants)}")
        if p.notes:
            click.echo(f"    Notes:     {p.notes}")
        click.echo()


@main.command()
def update():
    """Force-refresh profiles from the shared remote database."""
    _load_db(force=True)


if __name__ == "__main__":
    main()

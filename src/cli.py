"""Command-line front end: scan menus, manage pending scans, favorites and history."""

import asyncio
import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import NoReturn
from typing import Optional

import typer

from src.compatibility import evaluate_compatibility
from src.config import DEFAULT_TARGET_LANGUAGE
from src.config import STORAGE_PATH
from src.connectivity import ConnectivityMonitor
from src.datamodels import DietaryProfile
from src.datamodels import MenuItem
from src.datamodels import User
from src.image_validation import ImageValidationError
from src.image_validation import encode_uploaded_image
from src.services.history_client import HistoryServiceError
from src.services.history_client import fetch_history
from src.services.history_client import get_auth_url
from src.services.history_client import save_history
from src.services.menu_analyzer import AnalysisError
from src.services.menu_analyzer import ImageEnhancementError
from src.services.menu_analyzer import analyze_menu
from src.services.menu_analyzer import enhance_image
from src.services.menu_analyzer import search_dish_info
from src.storage import FavoritesStore
from src.storage import JsonFileStorage
from src.storage import PendingScanStore
from src.storage import StorageQuotaError
from src.storage import TranslationCache
from src.submission import PendingScanNotFoundError
from src.submission import ScanSubmissionController
from src.submission import SubmissionState

logger = logging.getLogger(__name__)

cli = typer.Typer(help="Translate restaurant menus and check dishes against your diet.")

OFFLINE_NOTICE = "You are offline. Scan saved to 'Pending Uploads'."


def _storage() -> JsonFileStorage:
    return JsonFileStorage(STORAGE_PATH)


def _build_controller(offline: bool) -> ScanSubmissionController:
    storage = _storage()
    connectivity = ConnectivityMonitor(online=False) if offline else ConnectivityMonitor.from_platform()
    return ScanSubmissionController(
        connectivity=connectivity,
        pending_scans=PendingScanStore(storage),
        analyze=analyze_menu,
        save_history=save_history,
        translation_cache=TranslationCache(storage),
    )


def _fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


_DIET_HELP = {
    "--vegetarian": "Flag dishes that are not vegetarian",
    "--vegan": "Flag dishes that are not vegan",
    "--gluten-free": "Flag dishes that are not gluten-free",
    "--nut-allergy": "Flag dishes containing nuts",
    "--dairy-allergy": "Flag dishes containing dairy",
}


def _diet_option(flag: str):
    return typer.Option(False, flag, help=_DIET_HELP[flag])


def _profile(
    vegetarian: bool, vegan: bool, gluten_free: bool, nut_allergy: bool, dairy_allergy: bool
) -> DietaryProfile:
    return DietaryProfile(
        is_vegetarian=vegetarian,
        is_vegan=vegan,
        is_gluten_free=gluten_free,
        has_nut_allergy=nut_allergy,
        has_dairy_allergy=dairy_allergy,
    )


def _echo_item(item: MenuItem, profile: DietaryProfile) -> None:
    verdict = evaluate_compatibility(item, profile)
    if verdict.is_safe:
        typer.secho(f"{item.translated} ({item.original}) - 100% Match", fg=typer.colors.GREEN)
    else:
        typer.secho(f"{item.translated} ({item.original}) - {verdict.headline}", fg=typer.colors.RED)
    details = " | ".join(part for part in (item.category, item.price, item.spice_level) if part)
    if details:
        typer.echo(f"  {details}")
    if item.description:
        typer.echo(f"  {item.description}")
    if item.dietary or item.allergens:
        labels = item.dietary + [f"Contains {allergen}" for allergen in item.allergens]
        typer.echo(f"  {', '.join(labels)}")


async def _submit(controller: ScanSubmissionController, image_data: str, language: str, user: User | None):
    result = await controller.submit(image_data, language, user)
    await controller.wait_for_background()
    return result


def _run_submission(
    controller: ScanSubmissionController,
    image_data: str,
    language: str,
    user_id: str | None,
    profile: DietaryProfile,
) -> None:
    user = User(id=user_id) if user_id else None
    try:
        result = asyncio.run(_submit(controller, image_data, language, user))
    except (AnalysisError, StorageQuotaError, ImageValidationError) as e:
        _fail(str(e))

    if result.state == SubmissionState.QUEUED:
        typer.secho(OFFLINE_NOTICE, fg=typer.colors.YELLOW)
        return
    if not result.items:
        typer.echo("No dishes found on this menu.")
    for item in result.items:
        _echo_item(item, profile)


@cli.command()
def scan(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Menu photo"),
    language: str = typer.Option(DEFAULT_TARGET_LANGUAGE, "--language", "-l", help="Target language"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Signed-in user id, saves the scan to history"),
    offline: bool = typer.Option(False, "--offline", help="Treat the device as offline"),
    vegetarian: bool = _diet_option("--vegetarian"),
    vegan: bool = _diet_option("--vegan"),
    gluten_free: bool = _diet_option("--gluten-free"),
    nut_allergy: bool = _diet_option("--nut-allergy"),
    dairy_allergy: bool = _diet_option("--dairy-allergy"),
) -> None:
    """Translate a menu photo, or save it for later when offline."""
    try:
        image_data = encode_uploaded_image(image_path.read_bytes(), image_path.name)
    except ImageValidationError as e:
        _fail(str(e))

    profile = _profile(vegetarian, vegan, gluten_free, nut_allergy, dairy_allergy)
    _run_submission(_build_controller(offline), image_data, language, user_id, profile)


@cli.command()
def pending() -> None:
    """List scans saved while offline."""
    scans = PendingScanStore(_storage()).list()
    if not scans:
        typer.echo("No pending uploads.")
        return
    for scan in scans:
        saved_at = datetime.fromtimestamp(scan.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(f"{scan.id}  {saved_at}")


@cli.command("load-pending")
def load_pending(
    scan_id: str = typer.Argument(..., help="Id shown by the pending command"),
    language: str = typer.Option(DEFAULT_TARGET_LANGUAGE, "--language", "-l", help="Target language"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Signed-in user id, saves the scan to history"),
    vegetarian: bool = _diet_option("--vegetarian"),
    vegan: bool = _diet_option("--vegan"),
    gluten_free: bool = _diet_option("--gluten-free"),
    nut_allergy: bool = _diet_option("--nut-allergy"),
    dairy_allergy: bool = _diet_option("--dairy-allergy"),
) -> None:
    """Load a pending scan and translate it."""
    controller = _build_controller(offline=False)
    try:
        scan = controller.process_pending(scan_id)
    except PendingScanNotFoundError as e:
        _fail(str(e))
    profile = _profile(vegetarian, vegan, gluten_free, nut_allergy, dairy_allergy)
    _run_submission(controller, scan.image_data, language, user_id, profile)


@cli.command()
def favorites(
    vegetarian: bool = _diet_option("--vegetarian"),
    vegan: bool = _diet_option("--vegan"),
    gluten_free: bool = _diet_option("--gluten-free"),
    nut_allergy: bool = _diet_option("--nut-allergy"),
    dairy_allergy: bool = _diet_option("--dairy-allergy"),
) -> None:
    """List saved dishes."""
    items = FavoritesStore(_storage()).list()
    if not items:
        typer.echo("No favorites yet.")
        return
    profile = _profile(vegetarian, vegan, gluten_free, nut_allergy, dairy_allergy)
    for item in items:
        _echo_item(item, profile)


@cli.command()
def favorite(original: str = typer.Argument(..., help="Dish name as printed on the menu")) -> None:
    """Save a dish from the latest scan to favorites, or remove it if already saved."""
    storage = _storage()
    favorites_store = FavoritesStore(storage)
    item = next((fav for fav in favorites_store.list() if fav.original == original), None)
    if item is None:
        cached = TranslationCache(storage).list()
        if not cached:
            _fail("No translated menu yet. Scan a menu first.")
        item = next((dish for dish in cached[0].menu_items if dish.original == original), None)
        if item is None:
            _fail(f"No dish named '{original}' in the latest scan")

    if favorites_store.toggle(item):
        typer.echo(f"Added {item.translated} to favorites")
    else:
        typer.echo(f"Removed {item.translated} from favorites")


@cli.command()
def history(user_id: str = typer.Option(..., "--user-id", help="Signed-in user id")) -> None:
    """List a user's saved scans, newest first."""
    try:
        records = fetch_history(user_id)
    except HistoryServiceError as e:
        _fail(str(e))
    if not records:
        typer.echo("No saved scans yet.")
        return
    for record in records:
        typer.echo(f"{record.created_at}  {record.translated_text or record.original_text}")


@cli.command()
def login() -> None:
    """Print the Google sign-in URL to open in a browser."""
    try:
        url = get_auth_url()
    except HistoryServiceError as e:
        _fail(str(e))
    typer.echo(url)


@cli.command()
def enhance(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Menu photo"),
    prompt: str = typer.Option(..., "--prompt", "-p", help="e.g. 'Make it brighter'"),
    output: Path = typer.Option(Path("enhanced.png"), "--output", "-o"),
) -> None:
    """Edit a menu photo before scanning it."""
    try:
        image_data = encode_uploaded_image(image_path.read_bytes(), image_path.name)
        enhanced = enhance_image(image_data, prompt)
    except (ImageValidationError, ImageEnhancementError) as e:
        _fail(str(e))
    output.write_bytes(base64.b64decode(enhanced))
    typer.echo(f"Saved enhanced image to {output}")


@cli.command("dish-info")
def dish_info(name: str = typer.Argument(..., help="Dish name")) -> None:
    """Look up a dish's origin and cultural background."""
    typer.echo(search_dish_info(name))


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    cli()


if __name__ == "__main__":
    main()

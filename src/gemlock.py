"""gemlock: resolve gem dependencies and maintain a Bundler-compatible lockfile."""

import asyncio
import logging
import os
import sys
from typing import List

from args import parse_args
from cli_config import ConfigError, apply_cli_overrides, apply_config_overrides, apply_env_overrides, load_config
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from lockfile import LockfileSyntaxError, Resolution, read_lockfile, serialize_lockfile, write_lockfile
from registry.base import RegistryUnavailable
from registry.rubygems import RubyGemsClient
from resolution import (
    Manifest,
    ManifestError,
    ResolutionConflict,
    Resolver,
    detect_current_platform,
    load_manifest,
    manifest_from_tokens,
    merge_manifests,
)
from versioning import Requirement, Version, VersionError

logger = logging.getLogger(__name__)


def build_manifest(args) -> Manifest:
    """Combine the manifest file and ``-p`` tokens into one manifest."""
    parts = []
    if getattr(args, "MANIFEST", None):
        parts.append(load_manifest(args.MANIFEST))
    elif not getattr(args, "PACKAGES", None) and os.path.isfile(Constants.MANIFEST_NAME):
        logger.info("Using manifest %s", Constants.MANIFEST_NAME)
        parts.append(load_manifest(Constants.MANIFEST_NAME))
    if getattr(args, "PACKAGES", None):
        parts.append(manifest_from_tokens(args.PACKAGES))
    return merge_manifests(*parts)


def target_platform(args) -> str:
    return getattr(args, "PLATFORM", None) or detect_current_platform()


async def run_lock(args, manifest: Manifest) -> Resolution:
    """Resolve ``manifest`` against the configured registry."""
    async with RubyGemsClient(
        base_url=Constants.REGISTRY_URL_RUBYGEMS,
        timeout=Constants.REQUEST_TIMEOUT,
        max_concurrency=Constants.REGISTRY_MAX_CONCURRENCY,
    ) as client:
        resolver = Resolver(
            client,
            platform=target_platform(args),
            allow_prerelease=bool(getattr(args, "PRE", False)),
            max_steps=Constants.RESOLVER_MAX_STEPS,
        )
        return await resolver.resolve(manifest)


def check_resolution(resolution: Resolution) -> List[str]:
    """Validate version and requirement strings plus the graph invariants."""
    problems: List[str] = []
    for entry in resolution.entries:
        try:
            version = Version(entry.version)
        except VersionError as exc:
            problems.append(f"{entry.full_name}: {exc}")
            continue
        for dep in entry.dependencies:
            try:
                Requirement.parse(dep.requirement)
            except VersionError as exc:
                problems.append(f"{entry.full_name} -> {dep.name}: {exc}")
        requirers = [
            (other, dep)
            for other in resolution.entries
            for dep in other.dependencies
            if dep.name == entry.name
        ]
        for other, dep in requirers:
            try:
                requirement = Requirement.parse(dep.requirement)
            except VersionError:
                continue
            if not requirement.satisfied_by(version):
                problems.append(
                    f"{entry.full_name} does not satisfy {dep.requirement} required by {other.full_name}"
                )
    for direct in resolution.direct:
        try:
            requirement = Requirement.parse(direct.requirement)
        except VersionError as exc:
            problems.append(f"direct dependency {direct.name}: {exc}")
            continue
        locked = resolution.find(direct.name)
        if locked is None:
            continue
        try:
            locked_version = Version(locked.version)
        except VersionError:
            continue
        if not requirement.satisfied_by(locked_version):
            problems.append(f"{locked.full_name} does not satisfy direct requirement {direct.requirement}")
    problems.extend(resolution.validate())
    return problems


def _lock(args) -> int:
    try:
        manifest = build_manifest(args)
    except OSError as exc:
        logger.error("Cannot read manifest: %s", exc)
        return ExitCodes.FILE_ERROR.value
    except ManifestError as exc:
        logger.error("Invalid manifest: %s", exc)
        return ExitCodes.FILE_ERROR.value
    if not manifest.entries:
        logger.warning("No gems requested; writing an empty lockfile.")

    try:
        resolution = asyncio.run(run_lock(args, manifest))
    except ResolutionConflict as exc:
        logger.error("%s", exc.report.explain())
        return ExitCodes.RESOLUTION_ERROR.value
    except RegistryUnavailable as exc:
        logger.error("Registry unavailable while fetching %s: %s", exc.package, exc)
        return ExitCodes.CONNECTION_ERROR.value

    if getattr(args, "DRY_RUN", False):
        sys.stdout.write(serialize_lockfile(resolution))
        return ExitCodes.SUCCESS.value
    path = args.LOCKFILE or Constants.LOCKFILE_NAME
    try:
        write_lockfile(path, resolution)
    except OSError as exc:
        logger.error("Cannot write lockfile %s: %s", path, exc)
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.SUCCESS.value


def _check(args) -> int:
    path = args.LOCKFILE or Constants.LOCKFILE_NAME
    try:
        resolution = read_lockfile(path)
    except OSError as exc:
        logger.error("Cannot read lockfile %s: %s", path, exc)
        return ExitCodes.FILE_ERROR.value
    except LockfileSyntaxError as exc:
        logger.error("%s: %s", path, exc)
        return ExitCodes.LOCKFILE_ERROR.value

    problems = check_resolution(resolution)
    for problem in problems:
        logger.error("%s", problem)
    logger.info(
        "%s: %d gems, %d direct dependencies, platforms %s, %d problem(s)",
        path,
        len(resolution.names()),
        len(resolution.direct),
        ", ".join(resolution.platforms) or "-",
        len(problems),
    )
    return ExitCodes.LOCKFILE_ERROR.value if problems else ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging(getattr(args, "LOG_FILE", None))

    try:
        apply_config_overrides(load_config(getattr(args, "CONFIG", None)))
    except (OSError, ConfigError) as exc:
        logger.error("Cannot load config: %s", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)
    apply_env_overrides()
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND),
        )

    if args.COMMAND == "lock":
        code = _lock(args)
    else:
        code = _check(args)
    sys.exit(code)


if __name__ == "__main__":
    main()

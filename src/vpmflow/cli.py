"""CLI entry point for the VPM package planner."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .config import ProjectConfig, load_config
from .environment import UnityEnvironment
from .exceptions import AddPackageError, DependencyNotFound, MetadataFetchError, UnityInstallationError
from .models import PackageInfo
from .project import AddPackageOperation, FileProjectIo, UnityProject
from .report import generate_json, generate_text
from .repository import RepositoryPackageSource
from .store import EnvironmentStore
from .version import UnityVersion, parse_version

logger = logging.getLogger(__name__)

_HANDLED_ERRORS = (AddPackageError, MetadataFetchError, UnityInstallationError, ValueError)


def _resolve_request(
    source: RepositoryPackageSource,
    spec: str,
    unity_version: Optional[UnityVersion],
    allow_prerelease: bool,
) -> PackageInfo:
    name, _, version = spec.partition("@")
    if version:
        package = source.find_version(name, parse_version(version))
    else:
        package = source.latest(name, unity_version, allow_prerelease)
    if package is None:
        raise DependencyNotFound(name)
    logger.debug("Requested %s resolved to %s", spec, package)
    return package


def _load_config(args: argparse.Namespace) -> Optional[ProjectConfig]:
    try:
        return load_config(Path(args.config))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return None


def cmd_update_cache(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if config is None:
        return 1
    source = RepositoryPackageSource(config.repositories, cache_root=config.options.cache_root)
    try:
        source.refresh()
        print("Refreshed repositories:")
        for spec in config.repositories:
            print(f"  - {spec.url}")
        return 0
    except MetadataFetchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        source.close()


def cmd_add(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if config is None:
        return 1
    source = RepositoryPackageSource(config.repositories, cache_root=config.options.cache_root)
    try:
        override = UnityVersion.parse(config.options.unity_version) if config.options.unity_version else None
        project = UnityProject.load(FileProjectIo(config.path), unity_version=override)
        allow_prerelease = args.prerelease or config.options.allow_prerelease
        requested = [
            _resolve_request(source, spec, project.unity_version(), allow_prerelease) for spec in args.package
        ]
        operation = AddPackageOperation.UPGRADE_LOCKED if args.upgrade else AddPackageOperation.INSTALL_TO_DEPENDENCIES
        changes = project.plan_add(source, requested, operation, allow_prerelease)
        print(generate_json(changes) if args.format == "json" else generate_text(changes))
        return 0
    except _HANDLED_ERRORS as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        source.close()


def _require_target(args: argparse.Namespace, *optional: str) -> None:
    if args.action not in optional and not args.target:
        raise ValueError(f"'{args.action}' needs a target")


def _environment(args: argparse.Namespace) -> UnityEnvironment:
    return UnityEnvironment(EnvironmentStore(Path(args.store)), unity_hub=args.hub)


def cmd_unity(args: argparse.Namespace) -> int:
    environment = _environment(args)
    try:
        _require_target(args, "list", "hub")
        if args.action == "list":
            for installation in environment.get_unity_installations():
                hub = " (Unity Hub)" if installation.loaded_from_hub else ""
                print(f"{installation.version() or 'unknown'}\t{installation.path}{hub}")
        elif args.action == "add":
            version = environment.add_unity_installation(args.target)
            print(f"Added Unity {version}")
        elif args.action == "remove":
            matches = [unity for unity in environment.get_unity_installations() if unity.path == args.target]
            if not matches:
                raise ValueError(f"no unity installation at {args.target}")
            for unity in matches:
                environment.remove_unity_installation(unity)
        elif args.action == "suitable":
            expected = UnityVersion.parse(args.target or "")
            if expected is None:
                raise ValueError(f"invalid unity version: {args.target}")
            found = environment.find_most_suitable_unity(expected)
            if found is None:
                print("No suitable Unity found.")
                return 1
            print(found.path)
        elif args.action == "hub":
            print(environment.find_unity_hub() or "Unity Hub not found.")
        return 0
    except _HANDLED_ERRORS as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def cmd_projects(args: argparse.Namespace) -> int:
    environment = _environment(args)
    try:
        _require_target(args, "list")
        if args.action == "list":
            for record in environment.get_projects():
                star = "*" if record.favorite else " "
                print(f"{star} {record.path}\t{record.unity_version or 'unknown'}\t{record.type_label}")
        elif args.action == "add":
            record = environment.add_project(args.target)
            print(f"Added project {record.path} ({record.type_label})")
        elif args.action == "remove":
            target = str(Path(args.target).resolve())
            for record in environment.get_projects():
                if record.path == target:
                    environment.remove_project(record)
        return 0
    except _HANDLED_ERRORS as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def _add_store_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--store", default="unity.json", help="Environment store file (default: %(default)s)")
    parser.add_argument("--hub", help="Path to the Unity Hub executable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan VPM package changes for Unity projects")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    update = subparsers.add_parser("update-cache", help="Download the configured repositories")
    update.add_argument("config", help="Path to the project configuration file")
    update.set_defaults(func=cmd_update_cache)

    add = subparsers.add_parser("add", help="Show the changes needed to add packages to a project")
    add.add_argument("config", help="Path to the project configuration file")
    add.add_argument("package", nargs="+", help="Package name, optionally name@version")
    add.add_argument("--upgrade", action="store_true", help="Only upgrade packages that are already locked")
    add.add_argument("--prerelease", action="store_true", help="Allow prerelease versions")
    add.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    add.set_defaults(func=cmd_add)

    unity = subparsers.add_parser("unity", help="Manage known Unity installations")
    unity.add_argument("action", choices=["list", "add", "remove", "suitable", "hub"])
    unity.add_argument("target", nargs="?", help="Installation path or Unity version")
    _add_store_arguments(unity)
    unity.set_defaults(func=cmd_unity)

    projects = subparsers.add_parser("projects", help="Manage known projects")
    projects.add_argument("action", choices=["list", "add", "remove"])
    projects.add_argument("target", nargs="?", help="Project directory")
    _add_store_arguments(projects)
    projects.set_defaults(func=cmd_projects)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

import argparse
import json
import logging
import os
import sys

from github import Auth, Github

from .backport import backport_to_branch, backport_to_label
from .config import load_settings
from .errors import ConfigError
from .events import handle_event
from .job_queue import backport_queue
from .workspace import prune_workspaces


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="backport-bot", description="Backport merged pull requests to other branches")
    subparsers = parser.add_subparsers(dest="command", required=True)

    event = subparsers.add_parser("event", help="Process a GitHub event payload")
    event.add_argument('--event-name', type=str, default=os.environ.get("GITHUB_EVENT_NAME"),
                       help='Event name, e.g. pull_request or issue_comment (default: $GITHUB_EVENT_NAME)')
    event.add_argument('--event-path', type=str, default=os.environ.get("GITHUB_EVENT_PATH"),
                       help='Path to the JSON event payload (default: $GITHUB_EVENT_PATH)')

    label = subparsers.add_parser("label", help="Backport as if LABEL had just been added to the PR")
    label.add_argument('--repo', type=str, required=True, help='Github repository name')
    label.add_argument('--pull-request', type=int, required=True, help='Pull request number to be backported')
    label.add_argument('--label', type=str, required=True, help='Target label, e.g. target/release-5.0')

    branch = subparsers.add_parser("branch", help="Backport the PR to BRANCH")
    branch.add_argument('--repo', type=str, required=True, help='Github repository name')
    branch.add_argument('--pull-request', type=int, required=True, help='Pull request number to be backported')
    branch.add_argument('--branch', type=str, required=True, help='Branch to backport to')

    prune = subparsers.add_parser("prune", help="Remove stale working directories")
    prune.add_argument('--max-age-hours', type=float, default=24.0, help='Remove workspaces older than this')

    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(e)
        sys.exit(1)

    if args.command == "prune":
        removed = prune_workspaces(settings.working_dir, args.max_age_hours * 3600)
        logging.info(f"Removed {len(removed)} stale workspace(s)")
        return

    gh = Github(auth=Auth.Token(settings.github_token))

    if args.command == "event":
        if not args.event_name or not args.event_path:
            print("Both --event-name and --event-path (or GITHUB_EVENT_NAME/GITHUB_EVENT_PATH) are required")
            sys.exit(1)
        with open(args.event_path) as event_file:
            payload = json.load(event_file)
        handle_event(gh, settings, args.event_name, payload, backport_queue)
    elif args.command == "label":
        backport_to_label(gh, settings, args.repo, args.pull_request, args.label, backport_queue)
    elif args.command == "branch":
        backport_to_branch(gh, settings, args.repo, args.pull_request, args.branch, backport_queue)

    backport_queue.join()


if __name__ == "__main__":
    main()

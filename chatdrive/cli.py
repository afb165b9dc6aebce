import argparse
import json
import os
from typing import Any, Dict, List, Optional

from .api import CommandGateway
from .client import CommandClient
from .engine import Engine
from .errors import BackendError, as_dict, describe
from .models import FileEntry, FolderId, TransferStatus
from .prompts import ConsolePrompter
from .session import Phase
from .session_store import open_config_store
from .tasks import InlineRunner
from .utils import format_bytes

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOT_CONNECTED = 2

_UNSET = object()


def folder_arg(value: str) -> FolderId:
    if value.lower() in ("root", "none", "-"):
        return None
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid folder id: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='chatdrive')
    p.add_argument('--config', help='Path to the client config JSON')
    p.add_argument('-y', '--yes', action='store_true', help='Answer yes to confirmations')
    sub = p.add_subparsers(dest='cmd', required=True)

    login = sub.add_parser('login')
    login.add_argument('api_id', type=int)
    login.add_argument('--api-hash')

    sub.add_parser('logout')

    folders = sub.add_parser('folders')
    folders.add_argument('--json', action='store_true')

    sub.add_parser('sync')

    mkdir = sub.add_parser('mkdir')
    mkdir.add_argument('name')

    rmdir = sub.add_parser('rmdir')
    rmdir.add_argument('folder_id', type=int)

    ls = sub.add_parser('ls')
    ls.add_argument('--folder', type=folder_arg, default=_UNSET)
    ls.add_argument('--json', action='store_true')

    push = sub.add_parser('push')
    push.add_argument('paths', nargs='+')
    push.add_argument('--folder', type=folder_arg, default=_UNSET)

    pull = sub.add_parser('pull')
    pull.add_argument('file_ids', nargs='*', type=int)
    pull.add_argument('--folder', type=folder_arg, default=_UNSET)
    pull.add_argument('--out', help='Destination file (single) or directory (several)')
    pull.add_argument('--all', action='store_true', help='Download every file in the folder')

    rm = sub.add_parser('rm')
    rm.add_argument('file_ids', nargs='+', type=int)
    rm.add_argument('--folder', type=folder_arg, default=_UNSET)

    mv = sub.add_parser('mv')
    mv.add_argument('file_ids', nargs='+', type=int)
    mv.add_argument('--to', dest='target', type=folder_arg, required=True)
    mv.add_argument('--folder', type=folder_arg, default=_UNSET)

    search = sub.add_parser('search')
    search.add_argument('query')
    search.add_argument('--json', action='store_true')

    bandwidth = sub.add_parser('bandwidth')
    bandwidth.add_argument('--json', action='store_true')

    return p


def _entry_dict(entry: FileEntry) -> Dict[str, Any]:
    return {
        'id': entry.id,
        'name': entry.name,
        'size': entry.size,
        'folder_id': entry.folder_id,
        'mime_type': entry.mime_type,
        'created_at': entry.created_at,
    }


def _print_entries(entries: List[FileEntry], as_json: bool) -> None:
    if as_json:
        print(json.dumps([_entry_dict(e) for e in entries], indent=2))
        return
    for entry in entries:
        print(f"{entry.id}\t{format_bytes(entry.size)}\t{entry.name}")


def _report_error(exc: BaseException, as_json: bool) -> int:
    if as_json and isinstance(exc, BackendError):
        print(json.dumps({'error': as_dict(exc)}, indent=2))
    else:
        print(f"Error: {describe(exc)}")
    return EXIT_FAILED


def _use_folder(engine: Engine, args: argparse.Namespace) -> FolderId:
    """Switch the active folder when --folder was given and return the active one."""
    if args.folder is not _UNSET:
        engine.session.set_active_folder(args.folder)
    return engine.active_folder()


def _fetch(engine: Engine, folder_id: FolderId) -> List[FileEntry]:
    errors: List[Exception] = []
    engine.listings.fetch(folder_id, on_error=errors.append)
    if errors:
        raise errors[0]
    return engine.listings.get(folder_id)


def build_engine(args: argparse.Namespace) -> Engine:
    store = open_config_store(args.config)
    gateway = CommandGateway(CommandClient())
    save_dir = None
    if args.cmd == 'pull' and args.out and (args.all or len(args.file_ids) > 1 or os.path.isdir(args.out)):
        save_dir = args.out
    prompter = ConsolePrompter(assume_yes=args.yes, save_dir=save_dir)
    return Engine(store, gateway, InlineRunner(), prompter)


def _run(engine: Engine, args: argparse.Namespace) -> int:
    session = engine.session

    if args.cmd == 'login':
        if session.phase == Phase.CONNECTED:
            print('Already connected. Run "chatdrive logout" first.')
            return EXIT_FAILED
        session.login(args.api_id, args.api_hash)
        if session.phase != Phase.CONNECTED:
            print('Error: could not connect')
            return EXIT_NOT_CONNECTED
        print('OK: connected')
        return EXIT_OK

    if session.phase != Phase.CONNECTED:
        print('Not connected. Run "chatdrive login <api_id>" first.')
        return EXIT_NOT_CONNECTED

    if args.cmd == 'logout':
        if not session.logout():
            return EXIT_FAILED
        print('OK: signed out')
        return EXIT_OK

    if args.cmd == 'folders':
        rows = [{'id': None, 'name': session.folder_name(None)}]
        rows += [{'id': f.id, 'name': f.name} for f in session.folders]
        if args.json:
            print(json.dumps(rows, indent=2))
        else:
            for row in rows:
                marker = '*' if row['id'] == session.active_folder_id else ' '
                print(f"{marker} {row['id'] if row['id'] is not None else '-'}\t{row['name']}")
        return EXIT_OK

    if args.cmd == 'sync':
        added: List[int] = []
        session.sync_folders(on_done=added.append)
        return EXIT_OK if added else EXIT_FAILED

    if args.cmd == 'mkdir':
        failures: List[Exception] = []
        session.create_folder(args.name, on_done=lambda f: print(f"{f.id}\t{f.name}"), on_error=failures.append)
        return EXIT_FAILED if failures else EXIT_OK

    if args.cmd == 'rmdir':
        if not any(f.id == args.folder_id for f in session.folders):
            print(f"Unknown folder: {args.folder_id}")
            return EXIT_FAILED
        before = len(session.folders)
        session.delete_folder(args.folder_id, session.folder_name(args.folder_id))
        return EXIT_OK if len(session.folders) < before else EXIT_FAILED

    if args.cmd == 'ls':
        folder_id = engine.active_folder() if args.folder is _UNSET else args.folder
        try:
            entries = _fetch(engine, folder_id)
        except Exception as exc:
            return _report_error(exc, args.json)
        _print_entries(entries, args.json)
        return EXIT_OK

    if args.cmd == 'push':
        folder_id = engine.active_folder() if args.folder is _UNSET else args.folder
        missing = [p for p in args.paths if not os.path.isfile(p)]
        if missing:
            print(f"Not a file: {', '.join(missing)}")
            return EXIT_FAILED
        items = engine.uploads.enqueue_paths([os.path.abspath(p) for p in args.paths], folder_id)
        return _transfer_summary(engine.uploads, [i.id for i in items])

    if args.cmd == 'pull':
        _use_folder(engine, args)
        if args.all:
            return _bulk_exit(lambda cb: engine.operations.download_folder(on_done=cb))
        if not args.file_ids:
            print('Nothing to download.')
            return EXIT_FAILED
        if len(args.file_ids) > 1:
            engine.selection.replace(args.file_ids)
            return _bulk_exit(lambda cb: engine.operations.bulk_download(on_done=cb))
        file_id = args.file_ids[0]
        known = {e.id: e for e in _safe_listing(engine)}
        name = known[file_id].name if file_id in known else str(file_id)
        save_path = None
        if args.out:
            save_path = os.path.join(args.out, name) if os.path.isdir(args.out) else args.out
        item = engine.downloads.queue_download(file_id, name, engine.active_folder(), save_path=save_path)
        return _transfer_summary(engine.downloads, [item.id])

    if args.cmd == 'rm':
        _use_folder(engine, args)
        if len(args.file_ids) == 1:
            results: List[bool] = []
            engine.operations.delete(args.file_ids[0], on_done=results.append)
            return EXIT_OK if results and results[0] else EXIT_FAILED
        engine.selection.replace(args.file_ids)
        return _bulk_exit(lambda cb: engine.operations.bulk_delete(on_done=cb))

    if args.cmd == 'mv':
        _use_folder(engine, args)
        engine.selection.replace(args.file_ids)
        moved: List[Any] = []
        if engine.mover.move_selection(args.target, on_done=moved.append) is None:
            print('Nothing to move.')
            return EXIT_FAILED
        return EXIT_OK if moved else EXIT_FAILED

    if args.cmd == 'search':
        found: List[Any] = []
        engine.search.on_results = lambda _q, entries, _g: found.append(entries)
        engine.search.set_query(args.query)
        _print_entries(found[-1] if found else [], args.json)
        return EXIT_OK

    if args.cmd == 'bandwidth':
        try:
            stats = engine.gateway.get_bandwidth()
        except Exception as exc:
            return _report_error(exc, args.json)
        if args.json:
            print(json.dumps({
                'date': stats.date,
                'up_bytes': stats.up_bytes,
                'down_bytes': stats.down_bytes,
                'limit_bytes': stats.limit_bytes,
                'remaining_bytes': stats.remaining_bytes,
            }, indent=2))
        else:
            print(f"Up {format_bytes(stats.up_bytes)} / Down {format_bytes(stats.down_bytes)}"
                  f" / Remaining {format_bytes(stats.remaining_bytes)}")
        return EXIT_OK

    return EXIT_FAILED


def _safe_listing(engine: Engine) -> List[FileEntry]:
    try:
        return _fetch(engine, engine.active_folder())
    except Exception:
        # The name is cosmetic; fall back to the id.
        return []


def _bulk_exit(start) -> int:
    results: List[Any] = []
    if not start(results.append):
        return EXIT_FAILED
    if not results:
        return EXIT_FAILED
    result = results[0]
    return EXIT_OK if result.failed == 0 else EXIT_FAILED


def _transfer_summary(queue, item_ids: List[str]) -> int:
    failed = 0
    for item in queue.items:
        if item.id not in item_ids:
            continue
        if item.status == TransferStatus.FAILED:
            failed += 1
            print(f"FAILED\t{item.display_name}\t{item.error}")
        elif item.status == TransferStatus.SUCCESS:
            print(f"OK\t{item.display_name}")
    # Items removed before starting (declined save prompt) count as failures.
    failed += len([i for i in item_ids if queue.get(i) is None])
    queue.clear_finished()
    return EXIT_FAILED if failed else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    engine = build_engine(args)
    try:
        return _run(engine, args)
    finally:
        engine.close()
        engine.gateway.close()


if __name__ == '__main__':
    raise SystemExit(main())

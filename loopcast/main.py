import argparse
import sys
import time

from loopcast.config import ConfigManager, parse_port
from loopcast.core.downloader import DownloadCoordinator, load_manifest, run_fetch_all
from loopcast.core.maintenance import purge_corrupted_videos
from loopcast.database import ValidityCache
from loopcast.exceptions import LoopcastError
from loopcast.models.stream import assign_streams, stream_listing
from loopcast.scanner import MediaProbe, ValidityScanner, ensure_tool_available
from loopcast.server.web_server import start_server
from loopcast.supervisor import ProcessSupervisor


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loopcast",
        description="Download test videos and loop them as RTSP streams through a local media server.",
    )
    parser.add_argument("-s", "--single", action="store_true", help="Download and stream only one video.")
    parser.add_argument("-d", "--skip-download", action="store_true", help="Skip downloading videos.")
    parser.add_argument("-r", "--remove-corrupted", action="store_true", help="Remove corrupted videos and exit.")
    parser.add_argument("-p", "--port", default=None, help="Port of the stream listing endpoint (default 8080).")
    parser.add_argument("--manifest", default=None, help="JSON file mapping video names to URLs.")
    parser.add_argument("--video-dir", default=None, help="Directory holding the videos.")
    parser.add_argument("--data-dir", default=None, help="Directory holding settings.json, the manifest and the cache.")
    return parser


def run(args_list=None) -> int:
    args = build_parser().parse_args(args_list)

    print("--- loopcast ---")
    cfg = ConfigManager(data_dir=args.data_dir, video_dir=args.video_dir, manifest_file=args.manifest)
    settings = cfg.settings
    probe = MediaProbe(settings.ffprobe_bin, settings.probe_timeout_sec)

    if args.remove_corrupted:
        try:
            purge_corrupted_videos(cfg.video_dir, probe, settings.probe_timeout_sec)
        except LoopcastError as e:
            print(f"❌ {e}")
            return 1
        return 0

    try:
        port = parse_port(args.port if args.port is not None else cfg.port)
    except ValueError:
        print("❌ Invalid port")
        return 1

    supervisor = ProcessSupervisor(
        probe,
        rtsp_base_url=settings.rtsp_base_url,
        ffmpeg_bin=settings.ffmpeg_bin,
        probe_timeout=settings.probe_timeout_sec,
    )
    server = None
    try:
        ensure_tool_available([settings.ffmpeg_bin, "-version"])
        cfg.ensure_directories()

        # 1. Downloads
        if args.skip_download:
            print("⏭ Skipping download")
        else:
            print("📥 Downloading videos")
            assets = load_manifest(cfg.manifest_file)
            coordinator = DownloadCoordinator(
                cfg.video_dir,
                probe,
                max_concurrent=settings.max_concurrent_downloads,
                chunk_size=settings.chunk_size,
                progress_interval=settings.progress_interval_sec,
                connect_timeout=settings.connect_timeout_sec,
                read_timeout=settings.read_timeout_sec,
                probe_timeout=settings.probe_timeout_sec,
            )
            run_fetch_all(coordinator, assets, limit=1 if args.single else -1)

        # 2. Media server
        supervisor.start_server(
            settings.media_server_command,
            marker=settings.readiness_marker,
            timeout=settings.readiness_timeout_sec,
        )

        # 3. Validity scan
        scanner = ValidityScanner(ValidityCache(cfg.cache_file), probe, settings.probe_timeout_sec)
        available_videos = scanner.scan_directory(cfg.video_dir)
        if not available_videos:
            print("❌ No videos available")
            return 1

        # 4. Streams
        assignments = assign_streams(available_videos, settings.single_stream_name if args.single else "")
        supervisor.start_streams(assignments, cfg.video_dir)

        # 5. Listing endpoint
        server, port = start_server(stream_listing(assignments), port)
        print(f"http://localhost:{port}")
        print("Press Ctrl+C to exit")

        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...")
    except LoopcastError as e:
        print(f"❌ {e}")
        return 1
    except OSError as e:
        print(f"❌ Error starting server: {e}")
        return 1
    finally:
        supervisor.shutdown()
        if server is not None:
            server.shutdown()
            server.server_close()
            print("Server stopped. Goodbye!")
    return 0


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()

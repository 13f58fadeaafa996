# app/main.py — 示例飞行程序
"""
连接 → （可选）录像 → 起飞 → 右翻 → 打印状态 → 降落。
收到 SIGINT/SIGTERM 时先降落。录像需要 PATH 里有 ffmpeg：
视频帧原样写入 ffmpeg 的 stdin（-i pipe:0）。

  tellolink-demo --record example.ts
"""

from __future__ import annotations

import argparse
import asyncio
import shutil
import signal
from typing import List, Optional

from ..config import configure, load_config
from ..drone import FLIP_RIGHT, Drone
from ..errors import TelloError
from ..events import TakeOffEvent, VideoPacketEvent
from ..log import configure_logging, get_logger

logger = get_logger("app")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tellolink-demo", description="Tello demo flight")
    parser.add_argument("--config", help="INI file with a [tello] section")
    parser.add_argument("--ip", help="drone address (default 192.168.10.1)")
    parser.add_argument("--record", metavar="PATH", help="record the video stream with ffmpeg")
    parser.add_argument("--no-video", action="store_true", help="do not open the video socket")
    parser.add_argument("--log-level", default="INFO")
    return parser


async def _spawn_ffmpeg(drone: Drone, path: str) -> Optional[asyncio.subprocess.Process]:
    if shutil.which("ffmpeg") is None:
        logger.info("ffmpeg_not_found:video_not_recorded")
        return None

    proc = await asyncio.create_subprocess_exec(
        "ffmpeg", "-y", "-i", "pipe:0", path,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )

    def _write(ev: VideoPacketEvent) -> None:
        if proc.returncode is not None or proc.stdin is None:
            return
        try:
            proc.stdin.write(ev.packet)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.error(f"writing_video_packet_failed:{e}")

    drone.on(VideoPacketEvent, _write)
    return proc


async def _stop_ffmpeg(proc: asyncio.subprocess.Process) -> None:
    if proc.stdin is not None:
        proc.stdin.close()
    try:
        await asyncio.wait_for(proc.wait(), timeout=5.0)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def fly(drone: Drone, record: Optional[str]) -> None:
    loop = asyncio.get_running_loop()

    # 退出信号：先降落
    def _on_signal() -> None:
        logger.warning("term_signal:landing")
        loop.create_task(drone.land())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal)
        except (NotImplementedError, RuntimeError):
            pass  # Windows

    drone.on(TakeOffEvent, lambda _: logger.warning("drone_took_off"))
    await drone.start()
    proc = None
    try:
        video = record is not None and drone.video is not None
        if video:
            proc = await _spawn_ffmpeg(drone, record)
            video = proc is not None
        if video:
            await drone.start_video()

        await drone.take_off()
        await drone.flip(FLIP_RIGHT)
        logger.info(f"state:{drone.state().to_dict()}")
        await drone.land()

        if video:
            await drone.stop_video()
    finally:
        await drone.close()
        if proc is not None:
            await _stop_ffmpeg(proc)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    config = load_config(args.config)
    if args.ip:
        config = configure(config, drone_ip=args.ip)
    if args.no_video:
        config = configure(config, video_enabled=False)

    try:
        asyncio.run(fly(Drone(config), args.record))
    except TelloError as e:
        logger.error(f"flight_failed:{e}")
        return 1
    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()

"""Minimal example: mount embedded tables under a URL prefix and fetch a file over HTTP."""

from __future__ import annotations

import asyncio
import stat
from datetime import datetime, timezone

from goblet import File, new_fs
from goblet.logging_setup import setup_logging
from goblet.server import StaticFileServer

NOW = datetime.now(timezone.utc)

files = {
    "/tmp/test": File("/tmp/test", None, stat.S_IFDIR | 0o755, NOW),
    "/tmp/test/hoge.txt": File("/tmp/test/hoge.txt", b"hogehoge", stat.S_IFREG | 0o644, NOW),
    "/tmp/test/fuga.txt": File("/tmp/test/fuga.txt", b"fuga", stat.S_IFREG | 0o644, NOW),
}
dirs = {"/tmp/test": ["hoge.txt", "fuga.txt", "not_exists.png"]}


async def main() -> None:
    setup_logging()

    fs = new_fs(dirs, files).with_prefix("/static")
    print("resolved:", fs.resolute("/static/tmp/test/fuga.txt"))
    print("listing:", fs.read_dir("/static/tmp/test"))

    server = StaticFileServer(fs, port=0)
    await server.start()
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        writer.write(b"GET /static/tmp/test/hoge.txt HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n")
        await writer.drain()
        print((await reader.read()).decode())
        writer.close()
        await writer.wait_closed()
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())

"""Heartbeat, sleep, fetch, fork and a repeated join.

Run with:

    fiberio run examples/hello.py

The heartbeat fiber loops forever, so this run never ends on its own;
add ``--virtual-clock --max-steps 50`` to watch a bounded slice of it.
"""


def heartbeat(ctx):
    print("[forked.]")
    while True:
        yield ctx.sleep(1)
        print("[.]")


def answer(ctx):
    print("{forked.}")
    yield ctx.sleep(1)
    print("{finished}")
    return 42


def main(ctx):
    yield ctx.fork(heartbeat)
    print("hello,")
    yield ctx.sleep(3)
    print("world")

    html = yield ctx.fetch("http://localhost/")
    print(html.decode("utf-8", errors="replace"))

    job = yield ctx.fork(answer)
    r = yield job.wait()
    print(r)
    r = yield job.wait()
    print(r)

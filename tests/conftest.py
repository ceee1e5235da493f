import pytest

from loopviz.engine.generator import TimelineGenerator

BASIC_TIMEOUT = """console.log('Start')

setTimeout(lambda: console.log('Macrotask'), 0)

console.log('End')"""

PROMISE_MICROTASK = """console.log('Start')

setTimeout(lambda: console.log('Timeout'), 0)

Promise.resolve().then(lambda: console.log('Microtask'))

console.log('End')"""

COMPLEX_CHAINING = """console.log('Start')

def timeout_1():
    console.log('Timeout 1')
    Promise.resolve().then(lambda: console.log('Microtask in Timeout'))

setTimeout(timeout_1, 0)

def microtask_1():
    console.log('Microtask 1')
    setTimeout(lambda: console.log('Timeout 2'), 0)

Promise.resolve().then(microtask_1)

Promise.resolve().then(lambda: console.log('Microtask 2'))

console.log('End')"""


@pytest.fixture
def generator():
    return TimelineGenerator()


def final_output(timeline):
    return list(timeline[-1].output)

"""Example gallery — small programs that exercise each runtime feature."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Example(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    code: str


CLOSURE = Example(
    id="closure",
    title="Closure",
    description=(
        "Demonstrates how a function retains access to variables from its"
        " outer scope."
    ),
    code="""\
function outer() {
  let count = 0;
  function inner() {
    count++;
    return count;
  }
  return inner;
}

const counter = outer();
console.log(counter()); // 1
console.log(counter()); // 2
console.log(counter()); // 3""",
)

EVENT_LOOP = Example(
    id="event-loop",
    title="Event Loop (setTimeout)",
    description="Visualizes how setTimeout callbacks are handled by the Task Queue.",
    code="""\
console.log('Start');

setTimeout(() => {
  console.log('Timeout callback');
}, 0);

console.log('End');""",
)

HOISTING = Example(
    id="hoisting",
    title="Hoisting",
    description="Shows the difference between var, let, and const hoisting behavior.",
    code="""\
console.log(x); // undefined
var x = 5;

// console.log(y); // ReferenceError
let y = 10;

function test() {
  console.log('Function hoisted');
}
test();""",
)

SCOPE_CHAIN = Example(
    id="scope-chain",
    title="Scope Chain",
    description="Visualizes how variables are looked up through the scope chain.",
    code="""\
const globalVar = 'Global';

function outer() {
  const outerVar = 'Outer';

  function inner() {
    const innerVar = 'Inner';
    console.log(innerVar);
    console.log(outerVar);
    console.log(globalVar);
  }

  inner();
}

outer();""",
)

PROMISE_ALL = Example(
    id="promise-all",
    title="Promise.all & fetch",
    description="Visualizes Promise.all with fetch requests and chaining.",
    code="""\
const GOOGLE = 'https://www.google.com';
const NEWS = 'https://www.news.google.com';

console.log('Start');

/* b, c, after */
Promise.all([
  fetch(GOOGLE).then(function b() {
    console.log('b done');
  }),
  fetch(GOOGLE).then(function c() {
    console.log('c done');
  }),
]).then(function after() {
  console.log('All done');
});

console.log('End');""",
)

EXAMPLES: tuple[Example, ...] = (CLOSURE, EVENT_LOOP, HOISTING, SCOPE_CHAIN, PROMISE_ALL)

_BY_ID: dict[str, Example] = {example.id: example for example in EXAMPLES}


def get_example(example_id: str) -> Example:
    """Return the gallery example with *example_id*.

    Raises:
        KeyError: If no example has that id.
    """
    try:
        return _BY_ID[example_id]
    except KeyError:
        raise KeyError(
            f"Unknown example '{example_id}'. Available: {', '.join(_BY_ID)}"
        ) from None

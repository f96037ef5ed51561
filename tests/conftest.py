"""
Shared fixtures: small lesson corpora written to tmp_path.

The default course has three consistent lessons under posts/, an image
and a code resource, mirroring a blog-style tutorial series.
"""

from pathlib import Path

import pytest


LESSON_101 = """# Hello, Objective-C

Welcome to the course. We start with the smallest possible program.

```objc
#import <Foundation/Foundation.h>

int main(int argc, const char * argv[]) {
    NSLog(@"Hello, World!");
    return 0;
}
```

[Next Lesson](102.md)
"""

LESSON_102 = """# The Core Data Stack

Open the model editor:

![Model editor](../image_resources/102/1.png)

The full listing is in [the source file](../code_resources/demo.m) and the
[Apple documentation](https://developer.apple.com/documentation/coredata).

```objc
NSManagedObjectContext *context = [[NSManagedObjectContext alloc] initWithConcurrencyType:NSMainQueueConcurrencyType];
```

[Previous Lesson](101.md) | [Next Lesson](103.md)
"""

LESSON_103 = """# Fetch Requests

```swift
let request = NSFetchRequest(entityName: "Person") // see [docs](missing.md)
```

[Previous Lesson](102.md)
"""


def write_files(root: Path, files: dict) -> Path:
    """Write {relative path: str | bytes} under root, keeping line endings as given."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
    return root


@pytest.fixture
def course_files() -> dict:
    return {
        "posts/101.md": LESSON_101,
        "posts/102.md": LESSON_102,
        "posts/103.md": LESSON_103,
        "image_resources/102/1.png": b"\x89PNG\r\n\x1a\nfake",
        "code_resources/demo.m": "int main(void) { return 0; }\n",
    }


@pytest.fixture
def course_root(tmp_path, course_files) -> Path:
    return write_files(tmp_path / "course", course_files)


@pytest.fixture
def make_corpus(tmp_path):
    """Factory writing a custom corpus and returning its root."""
    counter = {"n": 0}

    def _make(files: dict) -> Path:
        counter["n"] += 1
        return write_files(tmp_path / f"corpus_{counter['n']}", files)

    return _make


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep COURSEBOOK_* variables from the developer's shell out of tests."""
    for name in ("COURSEBOOK_CONTENT_DIR", "COURSEBOOK_OUTPUT_DIR", "COURSEBOOK_SITE_TITLE", "COURSEBOOK_WORKERS"):
        monkeypatch.delenv(name, raising=False)

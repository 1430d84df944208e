from typing import Any, Callable, Generic, Iterable, Iterator, List, TypeVar

T = TypeVar('T')


class MultisetStore(Generic[T]):
    """Insertion-ordered collection that keeps duplicate values.

    Deletion always removes a single entry, the earliest one that matches.
    Matching uses ``==``, so dataclass effects compare structurally.
    """

    def __init__(self, values: Iterable[T] = ()):
        self._values: List[T] = list(values)

    def add(self, value: T) -> None:
        self._values.append(value)

    def delete(self, value: Any) -> bool:
        return self.delete_by(lambda item: item == value)

    def delete_by(self, predicate: Callable[[T], bool]) -> bool:
        for index, item in enumerate(self._values):
            if predicate(item):
                del self._values[index]
                return True
        return False

    def values(self) -> List[T]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[T]:
        return iter(self.values())

    def __repr__(self) -> str:
        return f'MultisetStore({self._values!r})'

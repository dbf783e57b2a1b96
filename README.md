# vecindex

Building blocks for nearest-neighbour search over dense float vectors: an
HNSW proximity graph, Elkan k-means, scalar and product quantizers, a
fixed-capacity vector store, versioned deletion tracking and a checksummed
write-ahead log.

## Installing

```
pip install .
```

Run the tests with:

```
pip install ".[test]"
pytest
```

## Modules

- `vecindex.vectors` – `Vectors`, an append-only table of float32 vectors,
  each carrying a 64-bit payload. `put(data, vector)` returns the row
  position and raises `CapacityError` once the capacity is used up.
  `get_vector(i)` returns a read-only view, `get_data(i)` the payload.
  `save(path)` and `Vectors.load(path)` write and read the table.
  `VectorsOptions` holds a `Memmap` choice (`RAM` or `DISK`), which is
  recorded and saved with the table; the data is always kept in memory.
- `vecindex.kmeans` – the `Distance` families `L2`, `COSINE` and `DOT`.
  Search distances are smaller-is-closer: squared Euclidean distance,
  negated cosine similarity and negated dot product. `ElkanKMeans(family,
  c, samples, rng=None)` clusters a `Vec2` of samples; `iterate()` runs one
  round and returns `True` when no sample changed cluster, `finish()`
  returns the centroids.
- `vecindex.hnsw` – `Hnsw`, a hierarchical navigable small-world graph,
  configured by `HnswOptions` (`m` = 36, `ef_construction` = 500,
  `build_threads` = CPU count, `max_threads` = twice the CPU count).
  `generate_random_levels` and `size_of_a_layer` are the layer helpers.
- `vecindex.quantization` – `ScalarQuantization` (one byte per dimension),
  `ProductQuantization` (one byte per pair of dimensions, a 256-entry
  codebook per pair; fitting needs at least 256 samples) and
  `QuantizedStore`, which keeps the codes of every vector in a `Vectors`
  table and compares codes with the quantizer's distance.
- `vecindex.filter_delete` – `FilterDelete`, versioned tombstones. A
  payload packs a 48-bit pointer in its upper bits and an insert version in
  the low 16 bits; `filter(payload)` returns the pointer, or `None` if the
  pointer was deleted after that payload was issued.
- `vecindex.wal` – `Wal`, a log of records, each a native-endian CRC32,
  a 32-bit length and the payload. A log opened with `Wal.open` is read
  record by record until the end or the first damaged record, then
  `truncate()` cuts off the damaged tail and the log accepts writes.
  `Wal.create` starts an empty log. Calling an operation in the wrong state
  raises `WalStateError`. `WalWriter` appends on a background thread;
  `flush()` waits until queued records are synced, `shutdown()` flushes
  and closes the log.
- `vecindex.heaps` – `FixedHeap` and `FilteredFixedHeap`, bounded heaps
  that keep the smallest items; the filtered one asks a `keep` callable
  only about items that would enter it.
- `vecindex.pool` – `Pool`, a blocking pool whose `acquire()` lends an item
  for the length of a `with` block.
- `vecindex.vec2` – `Vec2`, a zero-initialised table of fixed-width
  float32 rows.

## Example

```python
from vecindex.filter_delete import FilterDelete
from vecindex.hnsw import Hnsw, HnswOptions
from vecindex.kmeans import Distance
from vecindex.vectors import Vectors

vectors = Vectors(dims=3, capacity=100)
tombstones = FilterDelete()
for pointer, row in [(1, [0.0, 0.0, 1.0]), (2, [1.0, 0.0, 0.0])]:
    vectors.put(tombstones.on_inserting(pointer), row)

options = HnswOptions(m=8, ef_construction=64, build_threads=1)
graph = Hnsw.build(Distance.L2, 3, 100, options, vectors, len(vectors))

position = vectors.put(tombstones.on_inserting(3), [0.0, 1.0, 0.0])
graph.insert(position)
tombstones.on_deleting(2)

hits = graph.search(
    [0.0, 0.1, 0.9], 2, keep=lambda payload: tombstones.filter(payload) is not None
)
pointers = [tombstones.filter(payload) for _, payload in hits]
```

`search` returns `(distance, payload)` pairs, nearest first. `graph.save()`
returns the graph as plain lists and numbers, and `Hnsw.load` rebuilds it
from that state and the same `Vectors` table.

A write-ahead log:

```python
from vecindex.wal import Wal

with Wal.create("index.wal") as wal:
    wal.write(b"first")
    wal.flush()

with Wal.open("index.wal") as wal:
    records = []
    while (record := wal.read()) is not None:
        records.append(record)
    wal.truncate()
    wal.write(b"second")
```

## What the package does not do

There is no ready-made index object that ties the vector store, the graph,
the tombstones and the log together: replaying a log into a store and
graph, and choosing how to serialise log records and saved graph state, is
left to the caller. The only searchable structure is the HNSW graph;
quantized codes can be stored and compared with `QuantizedStore`, but there
is no exhaustive-scan or inverted-list index. There is no server and no
command-line program.
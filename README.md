# utreexo

Building blocks for a hash-based dynamic accumulator of the Bitcoin UTXO
set: forest position arithmetic, the node movements a batch of deletions
causes, leaf hashing, undo blocks, and readers and writers for the files a
bridge node keeps on disk.

```
pip install .            # needs cryptography
pip install ".[test]"    # adds pytest
```

The package has two parts:

- `utreexo.accumulator` – `utils` (position arithmetic), `transform`
  (deletion transforms), `hashes` (leaf hashing and a simulated chain) and
  `undo` (undo blocks).
- `utreexo.bridgenode` – `compress` (amount and script compression),
  `rev` (undo-file and block-index readers) and `flatfile` (proof and undo
  flat files with their offset index).

## Forest positions

Positions are numbered row by row, leaves first, with unsigned 64-bit
arithmetic:

```python
from utreexo.accumulator.utils import tree_rows, root_position, parent, extract_twins

tree_rows(9)                 # 4: nine leaves need a 16-leaf forest
root_position(15, 0, 4)      # 14: the single-leaf root of a 15-leaf forest
parent(4, 4)                 # 18

# siblings that are both deleted collapse into their parent
extract_twins([4, 5, 6, 7, 8], 4)   # ([18, 19], [8])
```

Other helpers include `child`, `child_many`, `parent_many`, `cousin`,
`detect_row`, `detect_offset`, `in_forest`, `num_roots`,
`get_roots_forwards` (root positions and their rows), `sub_tree_positions`,
`merge_sorted`, `dedupe_swap_dirt` and `bin_string`, which draws a forest of
up to 6 rows. `proof_positions(targets, num_leaves, forest_rows)` returns the
positions a batch proof for sorted targets must carry, together with the
number of positions that are computed rather than supplied. Node movements
are described by `Arrow(src, dst, collapse=False)`.

## Deletion transforms

`utreexo.accumulator.transform.remove_transform(dels, num_leaves,
forest_rows)` returns, row by row from the bottom, the arrows that remove the
sorted positions `dels`; `floor_transform` expands them into leaf-level
arrows.

## Hashes and undo blocks

`utreexo.accumulator.hashes` provides `hash_from_string` (SHA-256),
`parent_hash` (SHA-512/256 over two non-empty children; an all-zero child
raises `ValueError`), `mini` (the 12-byte prefix), the `Leaf` dataclass and
`SimChain`, which produces blocks of unique leaves whose deletions return
after a random number of blocks and can step back with `back_one`.

`UndoBlock` in `utreexo.accumulator.undo` records a block's add count and the
positions and hashes it deleted, and round-trips through a big-endian form:

```python
from utreexo.accumulator.undo import UndoBlock

undo = UndoBlock(num_adds=3, positions=[454, 474], hashes=[b"\x01" * 32, b"\x02" * 32])
data = undo.to_bytes()
assert len(data) == undo.serialize_size()
assert UndoBlock.from_bytes(data).positions == [454, 474]
```

## Bridge node formats

Amounts and scripts are compressed the way a full node stores them in its
undo files:

```python
from utreexo.bridgenode.compress import (
    compress_tx_out_amount,
    decompress_tx_out_amount,
    encode_vlq,
)

compress_tx_out_amount(100_000_000)    # 9
decompress_tx_out_amount(9)            # 100000000
encode_vlq(128)                        # b"\x80\x00"
```

`compress_script` / `decompress_script` recognise pay-to-pubkey-hash,
pay-to-script-hash and valid secp256k1 pay-to-pubkey scripts.

`utreexo.bridgenode.rev` reads undo records: `RevBlock.deserialize` takes a
`rev*.dat` stream positioned at a block's record, and `read_tx_in_undo`,
`read_var_int` and `read_cblock_file_index` read the parts. `buffer_db` and
`buffer_db_height` take the key/value pairs of a block index database and map
header hashes to undo positions or heights. `get_block_bytes_from_file`
returns a block's raw bytes using a 12-bytes-per-block offset file.

`utreexo.bridgenode.flatfile.FlatFileState.open(offset_path, data_path)`
opens or resumes a pair of files. `write_proof_block` and `write_undo_block`
append any record that has a `height`, `serialize_size()` and
`serialize(stream)` (an `UndoBlock` qualifies), and `write_ttls` writes the
lifetimes of spent outputs into the proof records that created them. It is a
context manager.

Errors are raised as `ValueError`, `EOFError` or `KeyError`.

## What this package does not do

- It holds no accumulator forest: there is no object that adds and deletes
  leaves, builds proofs or applies an `UndoBlock`.
- It has no command, no command-line options and no data-directory layout.
- It does not scan `blk*.dat` files to build a block offset index; it only
  reads an existing one.
- It opens no database; block index data must be passed in as key/value
  pairs.
- It runs no server for serving blocks or proofs.
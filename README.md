# stuntskit

A toolkit for taking apart and rebuilding the DOS racing game Stunts.
It runs anywhere Python 3.10 or later runs and needs no third-party
libraries.

## What is inside

- `stuntskit.dosmem` – `DosMemory`, a best-fit paragraph allocator that
  behaves like the DOS allocate / resize / free calls (`allocate`,
  `reallocate`, `free`, `largest_free`, `chunk_info`). Freed blocks are
  filled with 0xCC when backing memory is given, and neighbouring free
  blocks are merged. Failures raise `NotEnoughMemory`, `UnknownSegment`,
  `AlreadyFree` or `NoSpaceBehind`, all subclasses of `DosMemoryError`.
- `stuntskit.dosfile` – `DosFileManager`, DOS-style numbered file handles
  over real files (`create`, `open`, `close`, `seek`, `read`, `write`,
  `unlink`). It is a context manager that closes every open handle on
  exit. Errors raise `DosFileError`.
- `stuntskit.decompress` – the game's run-length and variable-length
  packers: `decompress`, `decompress_rle`, `decompress_vle`,
  `rle_sequences`, `rle_singles` and `decompressed_size`. Malformed data
  and unknown pass types raise `DecompressionError`.
- `stuntskit.fileio` – file helpers built on top of that: `read_file`,
  `write_file`, `file_paragraphs`, `decomp_paragraphs`, `decompress_file`,
  `load_resfile` (`.res`, falling back to unpacking `.pre`), `load_3dres`
  (unpacking `.p3s`, falling back to `.3sh`), `build_path` and
  `find_files`. Errors raise `FileError`.
- `stuntskit.resfile` – `ResourceFile`, a reader for resource archives
  (`ids`, `find`, `span`, `read`, `next_resource`).
- `stuntskit.mzexe` – MZ executable headers (`ExeHeader`), relocation
  tables (`read_relocation_table`, `relocations_in_range`,
  `remove_relocations`, `entries_unique`), 16-bit pointers (`Ptr16`),
  conversion between IDA offsets and DOSBox pointers (`PtrConverter`) and
  text reports (`format_header`, `format_layout`,
  `format_relocation_table`, `hex_string`).
- `stuntskit.execombiner` – `combine` assembles the game executable from
  its parts; `apply_dif` applies a patch stream to an image.
- `stuntskit.drvcombiner` – `integrate_driver` builds the sound driver
  into an executable image; `nop_range` blanks a code range and drops the
  relocations inside it.
- `stuntskit.tools` – segment:offset reports (`absolute_address`,
  `seg_ofs_info`, `print_seg_ofs_info`) and a `Stopwatch` that also works
  as a context manager.

## Examples

Unpack a compressed resource:

```python
from pathlib import Path
from stuntskit.decompress import decompress

raw = Path("GAME.PRE").read_bytes()
unpacked = decompress(raw)
```

List and read the resources of an archive:

```python
from stuntskit.resfile import ResourceFile

archive = ResourceFile.from_file("GAME.RES")
for resource_id in archive.ids():
    data = archive.read(resource_id)
    print(resource_id, len(data))
```

Manage conventional memory the way DOS does:

```python
from stuntskit.dosmem import DosMemory, NotEnoughMemory

memory = bytearray(0x100000)
dos = DosMemory(0x1000, 0x90000, memory)
segment = dos.allocate(100)
try:
    dos.allocate(0xFFFF)
except NotEnoughMemory as exc:
    print("largest free block:", exc.available)
dos.free(segment)
```

Inspect an executable header:

```python
from pathlib import Path
from stuntskit.mzexe import ExeHeader, format_header, format_layout

header = ExeHeader.parse(Path("GAME.EXE").read_bytes())
print(format_header(header))
print(format_layout(header))
```

## Commands

Installing the package provides two commands.

```
stuntskit-execombiner [--assets DIR] [--output FILE]
```

Rebuilds the game executable from `mcga.hdr`, `ega.cmn`, `mcga.dif` and
`mcga.cod` in the assets directory (default `assets`) and writes it to
`game.exe` unless `--output` says otherwise.

```
stuntskit-drvcombiner [--exe FILE] [--driver FILE] [--output FILE]
```

Builds an executable with the AdLib/Sound Blaster driver linked into the
image, so the driver no longer has to be loaded at run time. The defaults
are `assets/game_cracked.exe`, `assets/AD15.DRV` and `game_drv.exe`. The
headers and layouts of the old and new executables are printed.

Both commands print a message and exit with status 1 when a file cannot be
read or written or the input is not what they expect.

## What it does not do

The package does not execute game code: there is no CPU emulator, no
register model and no video output. It also does not parse the car
simulation records held in the resources; `ResourceFile` returns their
raw bytes.

## Running the tests

```
pip install -e ".[test]"
pytest
```
"""
memsim
============================================================
A teaching-oriented memory-hierarchy simulator: two set-associative
cache levels over a sparse main memory, LRU / FIFO / RANDOM replacement,
three-C miss classification, a voltage-scaled energy model, and a tiny
load/store ISA that drives the caches.
"""

from memsim.address import AddressCodec, Literal, Symbol, SymbolTable, parse_address_ref
from memsim.assembler import AssembledTrace, TraceAssembler, assemble
from memsim.cache import AccessType, CacheLevel, CacheLine, MissType
from memsim.config import CacheGeometry, SimulatorConfig, load_config
from memsim.energy import EnergyModel, EnergyTotals, amat
from memsim.errors import (ConfigurationError, ExecutionLimitExceeded,
                           MalformedTraceLine, SimulatorError, UnknownLabelError)
from memsim.interpreter import ALUResult, Interpreter, RunResult, StepResult
from memsim.isa import Program, RegisterFile, parse_program
from memsim.memory_system import AccessResult, MemoryImage, MemorySystem, Statistics
from memsim.replacement import ReplacementPolicy, select_victim
from memsim.simulator import Simulator
from memsim.trace import TraceOp, parse_trace, parse_trace_line

__version__ = "0.1.0"

# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
# https://chip-8.github.io/links/
#
# COMPATIBILITY QUIRKS TABLE
# https://games.gulrak.net/cadmium/chip8-opcode-table.html#quirk6
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908
#
# TEST SUITE
# https://github.com/Timendus/chip8-test-suite


import logging
import random
from collections import namedtuple
from enum import Enum
from functools import wraps


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
            0x20, 0x60, 0x20, 0x20, 0x70,  # 1
            0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
            0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
            0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
            0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
            0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
            0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
            0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
            0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
            0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
            0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
            0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
            0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
            0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

MEMORY_SIZE = 4096
FONT_ADDRESS = 0x000
GLYPH_SIZE = 5
ROM_START_ADDRESS = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - ROM_START_ADDRESS
REGISTER_COUNT = 16
STACK_DEPTH = 16
KEY_COUNT = 16
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64
TIMER_HZ = 60
CYCLES_PER_SECOND = 600

# policies for opcodes that don't decode
RAISE = "raise"
SKIP = "skip"


# ******************** ERRORS SECTION
class Chip8Error(Exception):
    """base class of every fatal condition raised by the virtual machine"""


class UnknownInstruction(Chip8Error):
    def __init__(self, opcode, address=None):
        self.opcode = opcode
        self.address = address
        where = "" if address is None else f" at 0x{address:04x}"
        super().__init__(f"Unknown instruction 0x{opcode:04x}{where}")


class StackOverflow(Chip8Error):
    def __init__(self, address):
        self.address = address
        super().__init__(f"The CHIP-8 stack can contain at most {STACK_DEPTH} addresses, "
                         f"cannot push 0x{address:04x}")


class StackUnderflow(Chip8Error):
    def __init__(self):
        super().__init__("Return with an empty stack")


class MemoryOutOfBounds(Chip8Error):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Memory access out of bounds at 0x{address:04x}")


class ProgramTooLarge(Chip8Error):
    def __init__(self, size):
        self.size = size
        super().__init__(f"Program is {size} bytes long, at most {MAX_ROM_SIZE} bytes fit in memory")


# ******************** UTILITIES SECTION
def asm(msg):
    """decorator to trace the ASM of the instruction being called"""
    def decorator(fn):
        @wraps(fn)
        def wrapper_fn(*args, **kwargs):
            chip = args[0]                  # args[0] equals self of the decorated method
            mem_addr = chip.pc - 0x2        # pc already points to the following instruction
            vals = fn(*args, **kwargs)      # use the locals() values of each decorated function in the trace
            if chip.log.isEnabledFor(logging.DEBUG):
                vals['mem_addr'] = mem_addr
                chip.log.debug(msg.format(**vals))
        return wrapper_fn
    return decorator


# ******************** DECODING SECTION
class Op(Enum):
    """every CHIP-8 instruction, valued by its opcode once masked"""
    CLS = 0x00E0
    RET = 0x00EE
    JP = 0x1000
    CALL = 0x2000
    SE_BYTE = 0x3000
    SNE_BYTE = 0x4000
    SE_REG = 0x5000
    LD_BYTE = 0x6000
    ADD_BYTE = 0x7000
    LD_REG = 0x8000
    OR = 0x8001
    AND = 0x8002
    XOR = 0x8003
    ADD_REG = 0x8004
    SUB = 0x8005
    SHR = 0x8006
    SUBN = 0x8007
    SHL = 0x800E
    SNE_REG = 0x9000
    LD_I = 0xA000
    JP_V0 = 0xB000
    RND = 0xC000
    DRW = 0xD000
    SKP = 0xE09E
    SKNP = 0xE0A1
    LD_VX_DT = 0xF007
    LD_VX_K = 0xF00A
    LD_DT_VX = 0xF015
    LD_ST_VX = 0xF018
    ADD_I = 0xF01E
    LD_F = 0xF029
    LD_B = 0xF033
    LD_MEM_VX = 0xF055
    LD_VX_MEM = 0xF065


# masks order is important: the first mask whose result is listed wins
DECODE_MASKS = (
    (0xFFFF, frozenset((Op.CLS.value, Op.RET.value))),
    (0xF0FF, frozenset(op.value for op in Op if op.value >> 12 in (0xE, 0xF))),
    (0xF00F, frozenset(op.value for op in Op if op.value >> 12 in (0x5, 0x8, 0x9))),
    (0xF000, frozenset(op.value for op in Op if op.value >> 12 in (0x1, 0x2, 0x3, 0x4, 0x6, 0x7, 0xA, 0xB, 0xC, 0xD))),
)


class Opcode(namedtuple("Opcode", "raw op x y n nn nnn")):
    """an instruction word split once into every field an instruction may need"""


def decode(raw, address=None):
    """decode a 16 bit instruction word, raise UnknownInstruction if no pattern matches"""
    for mask, ops in DECODE_MASKS:
        if raw & mask in ops:
            return Opcode(
                raw=raw,
                op=Op(raw & mask),
                x=(raw & 0x0F00) >> 8,
                y=(raw & 0x00F0) >> 4,
                n=raw & 0x000F,
                nn=raw & 0x00FF,
                nnn=raw & 0x0FFF,
            )
    raise UnknownInstruction(raw, address)


# ******************** I/O SECTION
class Framebuffer:
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.buffer = [0] * h * w
        self.dirty = False      # raised on every change, lowered by the renderer

    def pixel(self, x, y):
        """return 1 if pixel is ON, return 0 if pixel is OFF"""
        return self.buffer[(x % self.w) + (y % self.h) * self.w]

    def rows(self):
        for y in range(self.h):
            yield self.buffer[y * self.w:(y + 1) * self.w]

    def clear(self):
        self.buffer = [0] * self.h * self.w
        self.dirty = True

    def draw(self, x, y, sprite):
        """
        XOR the sprite rows onto the buffer with its top left corner at (x, y), wrapping around the edges
        return True if any pixel was switched from ON to OFF
        """
        collision = False
        for row, sprite_byte in enumerate(sprite):
            y_coordinate = (y + row) % self.h
            for bit in range(8):    # most significant bit is the leftmost pixel
                if not sprite_byte & (0x80 >> bit):
                    continue
                position = (x + bit) % self.w + y_coordinate * self.w
                if self.buffer[position]:
                    collision = True
                self.buffer[position] ^= 1
        self.dirty = True
        return collision

    def ack(self):
        """the renderer consumed the current frame"""
        self.dirty = False

    def __str__(self):
        return "\n".join("".join("#" if p else "." for p in row) for row in self.rows())


class Keypad:
    """latch of the 16 CHIP-8 keys, written by the host and only read by the interpreter"""

    def __init__(self):
        self.keys = [False] * KEY_COUNT

    def __getitem__(self, key):
        return self.keys[key & 0xF]

    def __setitem__(self, key, value):
        self.keys[key & 0xF] = bool(value)

    def untouched(self):
        return not any(self.keys)

    def first(self):
        """get the lowest key currently pressed, None if there's none"""
        for key, pressed in enumerate(self.keys):
            if pressed:
                return key
        return None

    def release_all(self):
        self.keys = [False] * KEY_COUNT

    def __str__(self):
        return "".join(f"{k:X}" if pressed else "-" for k, pressed in enumerate(self.keys))


class Timers:
    def __init__(self):
        self.dt = 0     # delay timer, active when non-zero
        self.st = 0     # sound timer, active when non-zero

    def tick(self):
        if self.dt > 0:
            self.dt -= 1
        if self.st > 0:
            self.st -= 1


# ******************** MEMORY SECTION
# ********** A FIXED SIZE RETURN ADDRESS STACK OF 16 SLOTS
class Stack:
    def __init__(self, depth=STACK_DEPTH):
        self.slots = [0] * depth
        self.sp = 0

    def push(self, address):
        if self.sp >= len(self.slots):
            raise StackOverflow(address)
        self.slots[self.sp] = address
        self.sp += 1

    def pop(self):
        if self.sp == 0:
            raise StackUnderflow()
        self.sp -= 1
        return self.slots[self.sp]

    def clear(self):
        self.slots = [0] * len(self.slots)
        self.sp = 0

    def __len__(self):
        return self.sp

    def __str__(self):
        return "[" + ", ".join(f"0x{a:04x}" for a in self.slots[:self.sp]) + "]"


# ********** WRAPS A BYTEARRAY TO REPRESENT THE MAIN MEMORY WITH A LIMITED SIZE OF 4KB
class Memory:
    def __init__(self, size=MEMORY_SIZE):
        self.inner = bytearray(size)
        self.inner[FONT_ADDRESS:FONT_ADDRESS+len(C8_FONTS)] = bytes(C8_FONTS)

    def _check(self, start, stop):
        """every address in [start, stop) must exist, nothing wraps around"""
        if start < 0:
            raise MemoryOutOfBounds(start)
        if stop > len(self.inner):
            raise MemoryOutOfBounds(max(start, len(self.inner)))

    def _span(self, key):
        if isinstance(key, slice):
            if key.step not in (None, 1) or key.start is None or key.stop is None:
                raise TypeError("memory slices need an explicit start and stop")
            return key.start, key.stop
        return key, key + 1

    def __len__(self):
        return len(self.inner)

    def __getitem__(self, key):
        self._check(*self._span(key))
        return self.inner[key]

    def __setitem__(self, key, value):
        start, stop = self._span(key)
        self._check(start, stop)
        if isinstance(key, slice) and len(value) != stop - start:
            raise ValueError(f"cannot write {len(value)} bytes into {stop - start}")
        self.inner[key] = value

    def word(self, address):
        """fetch the big endian 16 bit word at address"""
        self._check(address, address + 2)
        return self.inner[address] << 8 | self.inner[address + 1]

    def load(self, program, address=ROM_START_ADDRESS):
        """copy the program image in memory, raise ProgramTooLarge if it doesn't fit"""
        if len(program) > len(self.inner) - address:
            raise ProgramTooLarge(len(program))
        self.inner[address:] = bytes(len(self.inner) - address)
        self.inner[address:address+len(program)] = program


# ******************** CPU SECTION
class Chip8:
    def __init__(self, rng=None, log=None, on_unknown=RAISE):
        if on_unknown not in (RAISE, SKIP):
            raise ValueError(f"on_unknown must be {RAISE!r} or {SKIP!r}, not {on_unknown!r}")
        self.mem = Memory()
        self.stack = Stack()
        self.v_regs = [0] * REGISTER_COUNT
        self.pc = ROM_START_ADDRESS
        self.idx = 0    # specify where the sprites reside in memory
        self.timers = Timers()
        self.framebuffer = Framebuffer()
        self.keypad = Keypad()
        self.waiting = False    # blocked on LD Vx, K
        self.rng = rng or (lambda: random.randint(0, 255))
        self.log = log or logging.getLogger("chip8")
        self.on_unknown = on_unknown
        self.instructions = {
            Op.CLS: self._clear_screen,
            Op.RET: self._return,
            Op.JP: self._jump,
            Op.CALL: self._call_addr,
            Op.SE_BYTE: self._skip_if_eq,
            Op.SNE_BYTE: self._skip_if_not_eq,
            Op.SE_REG: self._skip_if_eq_regs,
            Op.LD_BYTE: self._set_vk,
            Op.ADD_BYTE: self._add_to_vk,
            Op.LD_REG: self._set_vx_to_vy,
            Op.OR: self._set_vx_or_vy,
            Op.AND: self._set_vx_and_vy,
            Op.XOR: self._set_vx_xor_vy,
            Op.ADD_REG: self._add_vx_vy,
            Op.SUB: self._sub_vx_vy,
            Op.SHR: self._shr,
            Op.SUBN: self._subn_vx_vy,
            Op.SHL: self._shl,
            Op.SNE_REG: self._skip_if_not_eq_regs,
            Op.LD_I: self._set_idx,
            Op.JP_V0: self._jump_plus,
            Op.RND: self._random_byte_and,
            Op.DRW: self._to_screen,
            Op.SKP: self._skip_if_pressed,
            Op.SKNP: self._skip_if_not_pressed,
            Op.LD_VX_DT: self._set_vx_dt,
            Op.LD_VX_K: self._wait_keypress,
            Op.LD_DT_VX: self._set_dt_vx,
            Op.LD_ST_VX: self._set_st,
            Op.ADD_I: self._add_to_idx,
            Op.LD_F: self._select_char,
            Op.LD_B: self._bcd_repr,
            Op.LD_MEM_VX: self._store_vregs,
            Op.LD_VX_MEM: self._load_vregs,
        }

    @property
    def sp(self):
        return self.stack.sp

    @property
    def dt(self):
        return self.timers.dt

    @dt.setter
    def dt(self, value):
        self.timers.dt = value

    @property
    def st(self):
        return self.timers.st

    @st.setter
    def st(self, value):
        self.timers.st = value

    def __str__(self):
        registers = " ".join(f"V{i:X}:0x{v:02x}" for i, v in enumerate(self.v_regs))
        pointers = f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | SP:{self.sp}"
        timers = f"DT:{self.dt} | ST:{self.st}"
        stack = f"STACK:{self.stack}"
        flags = f"DRAW:{self.framebuffer.dirty} | WAITING:{self.waiting} | KEYPAD:{self.keypad}"
        return f"{pointers}\n{registers}\n{timers}\n{stack}\n{flags}"

    def load(self, program):
        """load a program image at 0x200"""
        self.mem.load(program)
        self.log.info("Loaded a %d bytes program at 0x%04x", len(program), ROM_START_ADDRESS)

    def reset(self):
        """back to the power-on state, the font and the loaded program stay in memory"""
        self.stack.clear()
        self.v_regs = [0] * REGISTER_COUNT
        self.pc = ROM_START_ADDRESS
        self.idx = 0
        self.timers = Timers()
        self.framebuffer.clear()    # same object, the renderer sees the blank frame
        self.keypad.release_all()
        self.waiting = False

    def tick_timers(self):
        self.timers.tick()

    def step(self):
        """fetch, decode and execute one instruction, return the executed Opcode (None if skipped)"""
        address = self.pc
        raw = self.mem.word(address)    # each instruction is two bytes long
        try:
            opcode = decode(raw, address)
        except UnknownInstruction as err:
            if self.on_unknown == RAISE:
                raise
            self.log.warning("%s, skipped", err)
            self._goto_next_instruction()
            return None
        self._goto_next_instruction()
        try:
            self.instructions[opcode.op](opcode)
        except Chip8Error:
            self.pc = address   # instructions check everything before writing, pc is the only thing to undo
            raise
        return opcode

    def _goto_next_instruction(self):
        self.pc += 0x2

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CLS")
    def _clear_screen(self, opcode):
        self.framebuffer.clear()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RET -> 0x{address:04x}")
    def _return(self, opcode):
        """return from a subroutine"""
        address = self.stack.pop()
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP 0x{address:04x}")
    def _jump(self, opcode):
        address = opcode.nnn
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CALL 0x{address:04x}")
    def _call_addr(self, opcode):
        address = opcode.nnn
        self.stack.push(self.pc)
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x:X}, {comparison_value}")
    def _skip_if_eq(self, opcode):
        x, comparison_value = opcode.x, opcode.nn
        if self.v_regs[x] == comparison_value:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x:X}, {comparison_value}")
    def _skip_if_not_eq(self, opcode):
        x, comparison_value = opcode.x, opcode.nn
        if self.v_regs[x] != comparison_value:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x:X}, V{y:X}")
    def _skip_if_eq_regs(self, opcode):
        x, y = opcode.x, opcode.y
        if self.v_regs[x] == self.v_regs[y]:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x:X}, V{y:X}")
    def _skip_if_not_eq_regs(self, opcode):
        x, y = opcode.x, opcode.y
        if self.v_regs[x] != self.v_regs[y]:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, {value}")
    def _set_vk(self, opcode):
        """set the value of one of the 16 variable registers, Vx"""
        x, value = opcode.x, opcode.nn
        self.v_regs[x] = value
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x:X}, {value}")
    def _add_to_vk(self, opcode):
        """add to the value already present in one of the variable registers, VF is left alone"""
        x, value = opcode.x, opcode.nn
        self.v_regs[x] = (self.v_regs[x] + value) & 0xFF    # keep only the lowest 8 bits from the result
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, V{y:X}")
    def _set_vx_to_vy(self, opcode):
        """set the value of Vx equal to that of Vy"""
        x, y = opcode.x, opcode.y
        self.v_regs[x] = self.v_regs[y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: OR V{x:X}, V{y:X}")
    def _set_vx_or_vy(self, opcode):
        x, y = opcode.x, opcode.y
        self.v_regs[x] |= self.v_regs[y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: AND V{x:X}, V{y:X}")
    def _set_vx_and_vy(self, opcode):
        x, y = opcode.x, opcode.y
        self.v_regs[x] &= self.v_regs[y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: XOR V{x:X}, V{y:X}")
    def _set_vx_xor_vy(self, opcode):
        x, y = opcode.x, opcode.y
        self.v_regs[x] ^= self.v_regs[y]
        return locals()

    # for the flag setting ALU instructions VF is always written last,
    # so when Vx is VF the flag overwrites the result

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x:X}, V{y:X}")
    def _add_vx_vy(self, opcode):
        """set the value of Vx to Vx + Vy, VF = carry"""
        x, y = opcode.x, opcode.y
        total = self.v_regs[x] + self.v_regs[y]
        self.v_regs[x] = total & 0xFF
        self.v_regs[0xF] = 1 if total > 0xFF else 0
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUB V{x:X}, V{y:X}")
    def _sub_vx_vy(self, opcode):
        """set the value of Vx to Vx - Vy, VF = NOT borrow"""
        x, y = opcode.x, opcode.y
        no_borrow = 0 if self.v_regs[y] > self.v_regs[x] else 1
        self.v_regs[x] = (self.v_regs[x] - self.v_regs[y]) & 0xFF
        self.v_regs[0xF] = no_borrow
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHR V{x:X}")
    def _shr(self, opcode):
        """set Vx equal to Vx SHR 1, VF = shifted out bit"""
        x = opcode.x
        LSB = self.v_regs[x] & 0x1
        self.v_regs[x] >>= 1
        self.v_regs[0xF] = LSB
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUBN V{x:X}, V{y:X}")
    def _subn_vx_vy(self, opcode):
        """set the value of Vx to Vy - Vx, VF = NOT borrow"""
        x, y = opcode.x, opcode.y
        no_borrow = 0 if self.v_regs[x] > self.v_regs[y] else 1
        self.v_regs[x] = (self.v_regs[y] - self.v_regs[x]) & 0xFF
        self.v_regs[0xF] = no_borrow
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHL V{x:X}")
    def _shl(self, opcode):
        """set Vx equal to Vx SHL 1, VF = shifted out bit"""
        x = opcode.x
        MSB = (self.v_regs[x] & 0x80) >> 7
        self.v_regs[x] = (self.v_regs[x] << 1) & 0xFF   # multiply by 2 and keep only the lowest 8 bits
        self.v_regs[0xF] = MSB
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD I, 0x{value:03x}")
    def _set_idx(self, opcode):
        """set the value of the I register"""
        value = opcode.nnn
        self.idx = value
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP V0, 0x{address:04x}")
    def _jump_plus(self, opcode):
        address = opcode.nnn
        v0 = self.v_regs[0x0]
        self.pc = address + v0
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RND V{x:X}, 0x{kk:02x}")
    def _random_byte_and(self, opcode):
        x, kk = opcode.x, opcode.nn
        rnd = self.rng() & 0xFF
        self.v_regs[x] = rnd & kk
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: DRW V{x:X}, V{y:X}, {n_bytes}")
    def _to_screen(self, opcode):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        x, y, n_bytes = opcode.x, opcode.y, opcode.n
        sprite = self.mem[self.idx:self.idx+n_bytes]    # out of bounds sprites fail before touching the screen
        collision = self.framebuffer.draw(self.v_regs[x], self.v_regs[y], sprite)
        self.v_regs[0xF] = 1 if collision else 0
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKP V{x:X}")
    def _skip_if_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        x = opcode.x
        key = self.v_regs[x]
        if self.keypad[key]:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKNP V{x:X}")
    def _skip_if_not_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        x = opcode.x
        key = self.v_regs[x]
        if not self.keypad[key]:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, K (waiting: {waiting})")
    def _wait_keypress(self, opcode):
        """wait for a key press and store its value in Vx"""
        x = opcode.x
        waiting = self.keypad.untouched()
        if waiting:
            self.pc -= 0x2      # stay on the same instruction until a key is pressed
        else:
            self.v_regs[x] = self.keypad.first()
        self.waiting = waiting
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, DT")
    def _set_vx_dt(self, opcode):
        """set Vx = DT (delay timer) value"""
        x = opcode.x
        self.v_regs[x] = self.timers.dt
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD DT, V{x:X}")
    def _set_dt_vx(self, opcode):
        """set DT (delay timer) = Vx"""
        x = opcode.x
        self.timers.dt = self.v_regs[x]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD ST, V{register:X}")
    def _set_st(self, opcode):
        """set ST = Vx"""
        register = opcode.x
        self.timers.st = self.v_regs[register]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD I, V{register:X}")
    def _add_to_idx(self, opcode):
        """set I = I + Vx, VF = 1 when the sum leaves the 12 bit address space"""
        register = opcode.x
        total = self.idx + self.v_regs[register]
        self.idx = total & 0xFFF
        self.v_regs[0xF] = 1 if total > 0xFFF else 0
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD F, V{register:X}")
    def _select_char(self, opcode):
        """set I to location of sprite for digit Vx"""
        register = opcode.x
        self.idx = FONT_ADDRESS + (self.v_regs[register] & 0xF) * GLYPH_SIZE
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD B, V{x:X}")
    def _bcd_repr(self, opcode):
        """store the hundreds digit of Vx in memory at I, the tens digit at I+1, the ones digit at I+2"""
        x = opcode.x
        value = self.v_regs[x]
        self.mem[self.idx:self.idx+3] = bytes((value // 100, value // 10 % 10, value % 10))
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD [I], V{x:X}")
    def _store_vregs(self, opcode):
        """store registers V0 through Vx (included) in memory starting at location I"""
        x = opcode.x
        self.mem[self.idx:self.idx+x+1] = bytes(self.v_regs[:x+1])
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, [I]")
    def _load_vregs(self, opcode):
        """read registers V0 through Vx (included) from memory starting at location I"""
        x = opcode.x
        self.v_regs[:x+1] = list(self.mem[self.idx:self.idx+x+1])
        return locals()

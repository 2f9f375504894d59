"""
Printing subsystem for Remit Printer.

- models: Transaction, PrintJob, PrinterStatus and friends
- encoder: Transaction -> ESC/POS byte stream
- handles: printer capabilities (python-escpos devices, simulated printer)
- monitor: periodic printer status polling
- print_queue: job list and job state machine
- processor: drains pending jobs through the printer
- service: wiring of all of the above from config

For convenience, common names are re-exported.
"""

from .encoder import *
from .errors import *
from .handles import *
from .ids import *
from .models import *
from .monitor import *
from .print_queue import *
from .processor import *
from .service import *

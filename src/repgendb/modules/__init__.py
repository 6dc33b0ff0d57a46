"""Representative-genome modules: k-mers, the index, seed-protein lookup and outputs."""

from . import kmers
from . import representatives
from . import seed_protein
from . import output

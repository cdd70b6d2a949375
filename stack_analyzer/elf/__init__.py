"""ELF container decoding: headers, .stack_sizes and the symbol table."""

from stack_analyzer.cli import main

main()

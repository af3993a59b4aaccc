from llvm_src.cli import main

raise SystemExit(main())

"""Core of the plan graph editor: entity/relationship model, auto-layout,
foreign-key inference and undo/redo history."""

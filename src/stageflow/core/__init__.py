# src/stageflow/core/__init__.py
"""
Core do Stageflow.

Este pacote reúne as responsabilidades essenciais para validar, agendar,
executar e rastrear pipelines de CI.

Componentes principais:
    - config       → resolução de configuração (merge, validação, hashing)
    - definition   → definição declarativa do pipeline e Trigger Gates
    - pipeline     → estados de execução e contexto da run
    - engine       → planejamento e execução controlada
    - traceability → Manifest e Event Log

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Estado e efeitos colaterais são sempre rastreáveis
"""

from metrics import summarize


def display_results(snap, title="Simulation"):
    """Print per-tier energy, storage and latency figures for one run"""
    print(f"\n=== {title} Results ===")

    storages = [(name, row) for name, row in snap.items() if row['kind'] == 'CloudStorage']
    nodes = [(name, row) for name, row in snap.items() if row['kind'] == 'ProcessingNode']
    dispatchers = [(name, row) for name, row in snap.items() if row['kind'] == 'Dispatcher']
    sensors = [(name, row) for name, row in snap.items() if row['kind'] == 'Sensor']

    for name, row in storages:
        print(f"Cloud Storage Used ({name}): {row['storage_used']:.2f} MB in {row['stores']} uploads")

    print("\n=== Fog Nodes ===")
    print(f"{'Node':<15} | {'Energy (J)':<10} | {'Load':<6}")
    print("-" * 38)
    for name, row in nodes:
        print(f"{name:<15} | {row['energy_consumed']:<10.4f} | {row['current_load']:<6}")

    for name, row in dispatchers:
        print(f"\n{name} Energy Used: {row['energy_consumed']:.4f} J ({row['tasks']} tasks forwarded)")

    if sensors:
        print("\n=== Sources ===")
        print(f"{'Source':<15} | {'Data (MB)':<10} | {'Energy (J)':<10} | {'Latency':<8}")
        print("-" * 53)
        for name, row in sensors:
            print(f"{name:<15} | {row['data_generated']:<10.2f} | {row['energy_consumed']:<10.4f} | "
                  f"{row['last_latency']:<8.3f}")

    display_summary(summarize(snap))


def display_summary(summary):
    print("\n=== Summary ===")
    print(f"Total Energy: {summary['total_energy']:.4f} J "
          f"(Sources = {summary['sensor_energy']:.4f}, Dispatcher = {summary['dispatcher_energy']:.4f}, "
          f"Fog = {summary['node_energy']:.4f})")
    print(f"Tasks: Dispatched = {summary['tasks_dispatched']}, Stored = {summary['tasks_stored']}")
    print(f"Latency: Mean = {summary['mean_latency']:.3f}, Max = {summary['max_latency']:.3f}")
    loads = ", ".join(f"{name} = {load}" for name, load in summary['node_loads'].items())
    print(f"Node Loads: {loads} (imbalance {summary['load_imbalance']})")


def display_replica_summary(aggregated, title="Replicas"):
    """Print mean and standard deviation of each summary figure"""
    print(f"\n=== {title} ===")
    print(f"{'Metric':<18} | {'Mean':<10} | {'Std':<10}")
    print("-" * 44)
    for key, stats in aggregated.items():
        print(f"{key:<18} | {stats['mean']:<10.4f} | {stats['std']:<10.4f}")


def display_comparative_analysis(results):
    """Display policy comparison in tabular format"""
    print("\n=== Comparative Analysis ===\n")

    print("=== Average Load Imbalance (tasks) ===")
    for policy, stats in results.items():
        print(f"{policy}: {stats['load_imbalance']['mean']:.2f} (std {stats['load_imbalance']['std']:.2f})")

    print("\n=== Average Fog Energy (J) ===")
    for policy, stats in results.items():
        print(f"{policy}: {stats['node_energy']['mean']:.4f}")

    print("\n=== Average Latency ===")
    for policy, stats in results.items():
        print(f"{policy}: Mean = {stats['mean_latency']['mean']:.3f}, Max = {stats['max_latency']['mean']:.3f}")

    print("\n=== Storage Used (MB) ===")
    for policy, stats in results.items():
        print(f"{policy}: {stats['storage_used']['mean']:.2f}")
